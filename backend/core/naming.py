"""Table / key naming helpers shared by the builders and the introspector."""


def singularize(name: str) -> str:
    """categories → category, boxes → box, courses → course, statuses → status, users → user."""
    lower = name.lower()
    if lower.endswith("ies") and len(name) > 3:
        return name[:-3] + "y"
    # "es" is a suffix only after a sibilant stem or a Latin -us stem
    if lower.endswith(("sses", "xes", "zes", "ches", "shes", "tuses", "nuses", "puses", "ruses", "buses")):
        return name[:-2]
    if lower.endswith("s") and not lower.endswith(("ss", "us", "is")):
        return name[:-1]
    return name


def pluralize(name: str) -> str:
    """user → users, category → categories, box → boxes; already-plural names are kept."""
    lower = name.lower()
    if lower.endswith("s") and not lower.endswith("ss"):
        return name
    if lower.endswith("y") and len(name) > 1 and lower[-2] not in "aeiou":
        return name[:-1] + "ies"
    if lower.endswith(("s", "x", "z", "ch", "sh")):
        return name + "es"
    return name + "s"


def key_name(table: str, underscored: bool = True) -> str:
    """Default foreign key column for rows pointing at ``table``: users → user_id / userId."""
    stem = singularize(table)
    return f"{stem}_id" if underscored else f"{stem}Id"


def strip_key_suffix(column: str) -> str:
    """customer_id → customer, authorId → author; other names are returned unchanged."""
    if column.lower().endswith("_id") and len(column) > 3:
        return column[:-3]
    if column.endswith("Id") and len(column) > 2:
        return column[:-2]
    return column
