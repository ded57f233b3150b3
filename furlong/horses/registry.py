"""Horse registry mutations: add/update, merge, rename, unmerge and bulk import.

Every operation works on a registry dict (see ``furlong.horses.identity``),
mutates it in place and returns it. Changes are applied to a working copy and
checked before they replace the registry, so a refused operation leaves the
registry untouched, no spelling ever ends up in two entries, and every
spelling keeps resolving to the entry that holds it.
"""

import copy
import logging
from typing import Iterable, Optional

from furlong.horses.identity import (
    clean_name,
    display_name,
    normalized_key,
    owner_of,
    resolve,
    strip_name,
)

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Structured registry failure. ``code`` is one of ``not_found``,
    ``exists``, ``alias_conflict`` or ``invalid``."""

    def __init__(self, code: str, message: str, name: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.name = name

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "name": self.name}


def new_entry(name: str, owner: str = "", country: str = "", is_historic: bool = False) -> dict:
    return {
        "name": name,
        "owner": owner or "",
        "country": country or "",
        "is_historic": bool(is_historic),
        "aliases": [],
    }


def _require_name(name: Optional[str]) -> str:
    cleaned = clean_name(name)
    if not cleaned:
        raise RegistryError("invalid", "Horse name is required")
    return cleaned


def _require_canonical(registry: dict, name: str) -> str:
    """Canonical key matching ``name`` exactly (ignoring case)."""
    target = clean_name(name).lower()
    for canonical in registry:
        if canonical.lower() == target:
            return canonical
    raise RegistryError("not_found", f"Horse '{name}' is not in the registry", name)


def _add_alias(entry: dict, alias: str) -> None:
    lowered = {a.lower() for a in entry["aliases"]}
    if alias.lower() != entry["name"].lower() and alias.lower() not in lowered:
        entry["aliases"].append(alias)


def _loosely_equal(a: str, b: str) -> bool:
    stripped = strip_name(a)
    if stripped and stripped == strip_name(b):
        return True
    key = normalized_key(a)
    return bool(key) and key == normalized_key(b)


def _routed_home(spelling: str, registry: dict) -> bool:
    """True for a new spelling, or one that already resolves to its holder."""
    holder = owner_of(spelling, registry)
    return holder is None or resolve(spelling, registry) == holder


def _apply(registry: dict, working: dict, touched: Iterable[str], introduced: Iterable[str] = ()) -> dict:
    """Replace ``registry`` with ``working`` once routing is verified.

    Every spelling of a touched entry must resolve to that entry. A newly
    introduced canonical name can outrank other entries' aliases that match
    it loosely, so those are checked too.
    """
    expected: list[tuple[str, str]] = []
    for canonical in touched:
        if canonical not in working:
            continue
        for spelling in [canonical, *working[canonical]["aliases"]]:
            expected.append((spelling, canonical))
    for new_name in introduced:
        for canonical, entry in working.items():
            if canonical == new_name:
                continue
            for alias in entry["aliases"]:
                if _loosely_equal(alias, new_name):
                    expected.append((alias, canonical))

    for spelling, canonical in expected:
        found = resolve(spelling, working)
        if found != canonical and _routed_home(spelling, registry):
            raise RegistryError(
                "alias_conflict",
                f"'{spelling}' would resolve to '{found}' instead of '{canonical}'",
                spelling,
            )

    registry.clear()
    registry.update(working)
    return registry


def _claimed_elsewhere(name: str, registry: dict) -> Optional[str]:
    """Entry a new spelling would already resolve to, if any."""
    if owner_of(name, registry) is None:
        return resolve(name, registry)
    return None


def add_or_update(
    registry: dict,
    name: str,
    owner: Optional[str] = None,
    country: Optional[str] = None,
    is_historic: Optional[bool] = None,
) -> tuple[dict, str]:
    """Create ``name`` or update the fields given for an existing entry.

    Returns ``(registry, canonical_key)``.
    """
    name = _require_name(name)
    holder = owner_of(name, registry)
    if holder and holder.lower() != name.lower():
        raise RegistryError("alias_conflict", f"'{name}' is already an alias of '{holder}'", name)

    if holder is None:
        routed = resolve(name, registry)
        if routed:
            raise RegistryError("alias_conflict", f"'{name}' already resolves to '{routed}'", name)
        working = copy.deepcopy(registry)
        working[name] = new_entry(name, owner or "", country or "", bool(is_historic))
        _apply(registry, working, [name], introduced=[name])
        logger.info(f"Registered horse {name}")
        return registry, name

    entry = registry[holder]
    if owner is not None:
        entry["owner"] = owner
    if country is not None:
        entry["country"] = country
    if is_historic is not None:
        entry["is_historic"] = bool(is_historic)
    return registry, holder


def ensure_registered(registry: dict, name: str) -> str:
    """Canonical key for a committed name, auto-registering a blank entry if new."""
    holder = resolve(name, registry)
    if holder:
        return holder
    name = _require_name(name)
    registry[name] = new_entry(name)
    logger.info(f"Auto-registered horse {name}")
    return name


def merge(registry: dict, primary: str, names: list[str]) -> tuple[dict, list[str]]:
    """Fold ``names`` (and their aliases, owner, country) into ``primary``.

    A name that is a canonical entry is absorbed and deleted; an unknown name
    becomes a new alias. Claiming a spelling that is held by, or resolves to,
    an entry outside the merge raises ``alias_conflict``. Returns
    ``(registry, absorbed_canonical_keys)``.
    """
    primary = _require_canonical(registry, primary)
    names = [clean_name(n) for n in names if clean_name(n)]
    if not names:
        raise RegistryError("invalid", "Nothing to merge", primary)

    merging = {primary.lower()} | {n.lower() for n in names}
    absorbed: list[str] = []
    new_aliases: list[str] = []
    for name in names:
        holder = owner_of(name, registry)
        if holder is None:
            routed = resolve(name, registry)
            if routed and routed.lower() not in merging:
                raise RegistryError(
                    "alias_conflict", f"'{name}' already resolves to '{routed}'", name
                )
            new_aliases.append(name)
        elif holder == primary:
            continue
        elif holder.lower() == name.lower():
            if holder not in absorbed:
                absorbed.append(holder)
        elif holder.lower() not in merging:
            raise RegistryError(
                "alias_conflict", f"'{name}' is already an alias of '{holder}'", name
            )

    working = copy.deepcopy(registry)
    target = working[primary]
    for canonical in absorbed:
        entry = working.pop(canonical)
        _add_alias(target, canonical)
        for alias in entry.get("aliases", []):
            _add_alias(target, alias)
        if not target["owner"] and entry.get("owner"):
            target["owner"] = entry["owner"]
        if not target["country"] and entry.get("country"):
            target["country"] = entry["country"]
    for alias in new_aliases:
        _add_alias(target, alias)

    _apply(registry, working, [primary])
    logger.info(f"Merged {names} into {primary} (absorbed {absorbed})")
    return registry, absorbed


def rename(registry: dict, old: str, new: str) -> dict:
    """Move ``old``'s data and aliases to ``new`` and keep ``old`` as an alias."""
    old = _require_canonical(registry, old)
    new = _require_name(new)
    holder = owner_of(new, registry) or resolve(new, registry)
    if holder is not None and holder != old:
        raise RegistryError("exists", f"'{new}' already belongs to '{holder}'", new)
    if new == old:
        raise RegistryError("invalid", "New name matches the current name", new)

    working = copy.deepcopy(registry)
    entry = working.pop(old)
    renamed = dict(entry, name=new, aliases=[])
    for alias in entry.get("aliases", []):
        if alias.lower() != new.lower():
            _add_alias(renamed, alias)
    # A case-only rename keeps no alias; the spellings resolve identically anyway
    if old.lower() != new.lower():
        _add_alias(renamed, old)
    working[new] = renamed

    _apply(registry, working, [new], introduced=[new])
    logger.info(f"Renamed {old} to {new}")
    return registry


def unmerge(registry: dict, primary: str, alias: str) -> dict:
    """Detach ``alias`` from ``primary`` and register it as an independent horse."""
    primary = _require_canonical(registry, primary)
    alias = _require_name(alias)
    matching = [a for a in registry[primary]["aliases"] if a.lower() == alias.lower()]
    if not matching:
        raise RegistryError("not_found", f"'{alias}' is not an alias of '{primary}'", alias)

    detached = matching[0]
    working = copy.deepcopy(registry)
    entry = working[primary]
    entry["aliases"] = [a for a in entry["aliases"] if a.lower() != alias.lower()]
    working[detached] = new_entry(detached)

    _apply(registry, working, [primary, detached], introduced=[detached])
    logger.info(f"Unmerged {detached} from {primary}")
    return registry


def import_entries(registry: dict, entries: list[dict]) -> tuple[dict, dict]:
    """Bulk add/update entries with optional alias lists.

    All alias claims are validated before anything changes. Returns
    ``(registry, {"added": n, "updated": n})``.
    """
    planned: dict[str, str] = {}
    for item in entries:
        name = _require_name(item.get("name"))
        holder = owner_of(name, registry)
        if holder and holder.lower() != name.lower():
            raise RegistryError("alias_conflict", f"'{name}' is already an alias of '{holder}'", name)
        routed = _claimed_elsewhere(name, registry)
        if routed:
            raise RegistryError("alias_conflict", f"'{name}' already resolves to '{routed}'", name)
        for alias in item.get("aliases") or []:
            alias = clean_name(alias)
            if not alias:
                continue
            alias_holder = owner_of(alias, registry) or resolve(alias, registry)
            if alias_holder and alias_holder.lower() != name.lower():
                raise RegistryError(
                    "alias_conflict", f"'{alias}' is already an alias of '{alias_holder}'", alias
                )
            claimed = planned.get(alias.lower())
            if claimed and claimed != name.lower():
                raise RegistryError("alias_conflict", f"'{alias}' is claimed twice in the import", alias)
            planned[alias.lower()] = name.lower()

    working = copy.deepcopy(registry)
    stats = {"added": 0, "updated": 0}
    touched: list[str] = []
    added: list[str] = []
    for item in entries:
        existed = owner_of(clean_name(item.get("name")), working) is not None
        working, canonical = add_or_update(
            working,
            item.get("name"),
            owner=item.get("owner"),
            country=item.get("country"),
            is_historic=item.get("is_historic"),
        )
        for alias in item.get("aliases") or []:
            alias = clean_name(alias)
            if alias:
                _add_alias(working[canonical], alias)
        touched.append(canonical)
        if not existed:
            added.append(canonical)
        stats["updated" if existed else "added"] += 1

    _apply(registry, working, touched, introduced=added)
    logger.info(f"Imported registry entries: {stats}")
    return registry, stats


def partition_violations(registry: dict) -> list[str]:
    """Spellings held by more than one entry (should always be empty)."""
    seen: dict[str, str] = {}
    violations = []
    for canonical, entry in registry.items():
        for spelling in [canonical, *entry.get("aliases", [])]:
            key = spelling.lower()
            if key in seen and seen[key] != canonical:
                violations.append(spelling)
            seen.setdefault(key, canonical)
    return violations


def registry_listing(registry: dict) -> list[dict]:
    """Registry entries sorted by name, each with its display name."""
    return [
        dict(entry, name=canonical, display_name=display_name(canonical))
        for canonical, entry in sorted(registry.items(), key=lambda x: x[0].lower())
    ]


def selector_options(registry: dict) -> list[dict]:
    """Identity choices offered to the reviewer (and the manual-entry form)."""
    return [
        {"name": canonical, "display_name": display_name(canonical)}
        for canonical in sorted(registry, key=str.lower)
    ]
