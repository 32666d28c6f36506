"""Default schedule template seeded into every new project."""

INITIAL_CATEGORIES: list[tuple[str, list[str]]] = [
    ("Milestone", [
        "Development start",
        "Kickoff",
        "G1",
        "Prototype review",
        "G2",
        "Internal test run",
        "G3",
        "Submission",
    ]),
    ("Planning", ["Concept", "Specification", "Rule review"]),
    ("Design", ["Cabinet design", "Panel design", "Final artwork"]),
    ("Mechanical", ["Mechanism concept", "Prototype build", "Durability test"]),
    ("Hardware", ["Board design", "Prototype board", "Mass production board"]),
    ("Graphics", ["Storyboard", "Asset production", "Implementation"]),
    ("Main", ["Main control program", "Verification"]),
    ("Sub", ["Sub control program", "Sound implementation"]),
]


def template_rows(categories=INITIAL_CATEGORIES) -> list[dict]:
    """Flatten the template into rows with sequential sort_order."""
    rows = []
    for category, items in categories:
        for item in items:
            rows.append({"category": category, "item": item, "sort_order": len(rows)})
    return rows
