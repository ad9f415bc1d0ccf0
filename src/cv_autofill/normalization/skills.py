"""Skill matching against the canonical skill catalog."""

from typing import Dict, Iterable, List, Optional


def match_skills(
    raw_skills: Iterable[str],
    canonical_skills: Iterable[str],
    aliases: Optional[Dict[str, str]] = None,
) -> List[str]:
    """
    Keep only skills that exist in the catalog, using the catalog's spelling.

    Matching is case-insensitive. Tenant aliases ("k8s" -> "Kubernetes")
    are resolved before the catalog lookup. Order of first appearance is
    preserved and duplicates are dropped.
    """
    catalog = {}
    for name in canonical_skills:
        if name and name.strip():
            catalog.setdefault(name.strip().lower(), name.strip())

    alias_map = {k.strip().lower(): v for k, v in (aliases or {}).items() if k}

    matched: List[str] = []
    seen = set()
    for raw in raw_skills:
        if not raw or not str(raw).strip():
            continue
        key = str(raw).strip().lower()
        if key in alias_map:
            key = alias_map[key].strip().lower()
        canonical = catalog.get(key)
        if canonical is None or canonical in seen:
            continue
        seen.add(canonical)
        matched.append(canonical)
    return matched
