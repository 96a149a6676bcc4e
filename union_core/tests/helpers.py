# union_core/tests/helpers.py


def scoped(union, path: str) -> str:
    """Union-scoped API url: scoped(union, "members/") -> /api/v1/u/<slug>/members/"""
    return f"/api/v1/u/{union.slug}/{path.lstrip('/')}"
