CATEGORY_CREDITS = {
    "food": 100,
    "blood": 300,
    "clothes": 150,
    "books": 75,
}

DEFAULT_CREDITS = 50


def credits_for(category: str) -> int:
    """Fixed credit award for a donation category; unknown categories get the default tier."""
    return CATEGORY_CREDITS.get(category, DEFAULT_CREDITS)
