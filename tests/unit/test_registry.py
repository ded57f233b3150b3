"""Tests for registry mutations and the alias partition."""

import copy
import random

import pytest

from furlong.horses.identity import resolve
from furlong.horses.registry import (
    RegistryError,
    add_or_update,
    ensure_registered,
    import_entries,
    merge,
    partition_violations,
    registry_listing,
    rename,
    selector_options,
    unmerge,
)


@pytest.fixture
def split_registry():
    """Two entries for what is really one horse."""
    return {
        "2022 Ginger Punch": {"name": "2022 Ginger Punch", "owner": "", "country": "",
                              "is_historic": False, "aliases": []},
        "Ginger Punch": {"name": "Ginger Punch", "owner": "Stonestreet", "country": "USA",
                         "is_historic": False, "aliases": ["G Punch"]},
    }


_SPELLINGS = [
    "Silver Streak", "SILVER-STREAK", "Silver Streek", "SilverStreak",
    "Bold Venture", "Bold Venture (USA)", "Bold-Venture",
    "Ginger Punch", "2022 Ginger Punch", "GINGER PUNCH 22", "G Punch",
    "Lucky Lady", "Lucky Lady (IRE)", "Zenyatta", "Zenyatta 2004", "Curlin",
]


def _random_step(rng: random.Random, registry: dict) -> None:
    """Apply one random registry mutation; refused ones must leave no trace."""
    before = copy.deepcopy(registry)
    canonicals = list(registry)
    op = rng.choice(["add", "merge", "rename", "unmerge", "import", "ensure"])
    try:
        if op == "add":
            add_or_update(registry, rng.choice(_SPELLINGS))
        elif op == "merge":
            merge(registry, rng.choice(canonicals), rng.sample(_SPELLINGS, 2))
        elif op == "rename":
            rename(registry, rng.choice(canonicals), rng.choice(_SPELLINGS) + rng.choice(["", " II"]))
        elif op == "unmerge":
            with_aliases = [c for c in canonicals if registry[c]["aliases"]]
            if with_aliases:
                primary = rng.choice(with_aliases)
                unmerge(registry, primary, rng.choice(registry[primary]["aliases"]))
        elif op == "import":
            import_entries(registry, [
                {"name": rng.choice(_SPELLINGS), "aliases": rng.sample(_SPELLINGS, 1)},
            ])
        else:
            ensure_registered(registry, rng.choice(_SPELLINGS))
    except RegistryError:
        assert registry == before


class TestAddOrUpdate:
    def test_add_new(self, registry):
        registry, canonical = add_or_update(registry, "  Zenyatta ", owner="Moss")
        assert canonical == "Zenyatta"
        assert registry["Zenyatta"]["owner"] == "Moss"
        assert registry["Zenyatta"]["aliases"] == []

    def test_update_only_given_fields(self, registry):
        registry, canonical = add_or_update(registry, "silver streak", country="IRE")
        assert canonical == "Silver Streak"
        assert registry["Silver Streak"]["country"] == "IRE"
        assert registry["Silver Streak"]["owner"] == ""

    def test_alias_spelling_refused(self, registry):
        with pytest.raises(RegistryError) as exc:
            add_or_update(registry, "Ginger Punch")
        assert exc.value.code == "alias_conflict"

    def test_loose_spelling_of_existing_horse_refused(self, registry):
        with pytest.raises(RegistryError) as exc:
            add_or_update(registry, "Silver-Streak")
        assert exc.value.code == "alias_conflict"
        assert "Silver-Streak" not in registry

    def test_blank_name(self, registry):
        with pytest.raises(RegistryError) as exc:
            add_or_update(registry, "  ")
        assert exc.value.code == "invalid"

    def test_ensure_registered(self, registry):
        assert ensure_registered(registry, "Ginger Punch") == "2022 Ginger Punch"
        assert ensure_registered(registry, "Lucky Lady (IRE)") == "Lucky Lady (IRE)"
        assert registry["Lucky Lady (IRE)"]["owner"] == ""


class TestMerge:
    def test_absorbs_entry_and_its_aliases(self, split_registry):
        registry, absorbed = merge(split_registry, "2022 Ginger Punch", ["Ginger Punch"])
        assert absorbed == ["Ginger Punch"]
        assert "Ginger Punch" not in registry
        assert set(registry["2022 Ginger Punch"]["aliases"]) == {"Ginger Punch", "G Punch"}
        assert registry["2022 Ginger Punch"]["owner"] == "Stonestreet"
        assert resolve("GINGER PUNCH 22", registry) == resolve("Ginger Punch", registry)

    def test_unknown_name_becomes_alias(self, registry):
        registry, absorbed = merge(registry, "Silver Streak", ["Silver Streek"])
        assert absorbed == []
        assert registry["Silver Streak"]["aliases"] == ["Silver Streek"]

    def test_alias_owned_elsewhere_refused(self, registry):
        before = copy.deepcopy(registry)
        with pytest.raises(RegistryError) as exc:
            merge(registry, "Silver Streak", ["Bold Venture (USA)"])
        assert exc.value.code == "alias_conflict"
        assert registry == before

    def test_spelling_resolving_elsewhere_refused(self, registry):
        before = copy.deepcopy(registry)
        with pytest.raises(RegistryError) as exc:
            merge(registry, "Bold Venture", ["SILVER-STREAK"])
        assert exc.value.code == "alias_conflict"
        assert registry == before
        assert resolve("SILVER-STREAK", registry) == "Silver Streak"

    def test_loose_spelling_of_primary_accepted(self, registry):
        registry, _ = merge(registry, "Silver Streak", ["SILVER-STREAK"])
        assert registry["Silver Streak"]["aliases"] == ["SILVER-STREAK"]
        assert resolve("SILVER-STREAK", registry) == "Silver Streak"

    def test_absorbed_name_shadowed_by_other_entry_refused(self):
        registry = {
            "Lucky Lady": {"name": "Lucky Lady", "owner": "", "country": "",
                           "is_historic": False, "aliases": []},
            "Lucky-Lady": {"name": "Lucky-Lady", "owner": "", "country": "",
                           "is_historic": False, "aliases": []},
            "Zenyatta": {"name": "Zenyatta", "owner": "", "country": "",
                         "is_historic": False, "aliases": []},
        }
        before = copy.deepcopy(registry)
        with pytest.raises(RegistryError) as exc:
            merge(registry, "Zenyatta", ["Lucky-Lady"])
        assert exc.value.code == "alias_conflict"
        assert registry == before

    def test_missing_primary(self, registry):
        with pytest.raises(RegistryError) as exc:
            merge(registry, "Zenyatta", ["Silver Streak"])
        assert exc.value.code == "not_found"

    def test_nothing_to_merge(self, registry):
        with pytest.raises(RegistryError) as exc:
            merge(registry, "Silver Streak", [" "])
        assert exc.value.code == "invalid"


class TestRename:
    def test_old_name_kept_as_alias(self, registry):
        registry = rename(registry, "Silver Streak", "Silver Streak II")
        assert "Silver Streak" not in registry
        assert registry["Silver Streak II"]["aliases"] == ["Silver Streak"]
        assert resolve("Silver Streak", registry) == "Silver Streak II"

    def test_aliases_carried_over(self, registry):
        registry = rename(registry, "2022 Ginger Punch", "Ginger Punch (22)")
        aliases = registry["Ginger Punch (22)"]["aliases"]
        assert set(aliases) == {"Ginger Punch", "2022 Ginger Punch"}

    def test_rename_to_taken_name(self, registry):
        with pytest.raises(RegistryError) as exc:
            rename(registry, "Silver Streak", "Bold Venture (USA)")
        assert exc.value.code == "exists"

    def test_rename_to_loose_spelling_of_other_horse(self, registry):
        with pytest.raises(RegistryError) as exc:
            rename(registry, "Bold Venture", "SilverStreak")
        assert exc.value.code == "exists"
        assert "Bold Venture" in registry

    def test_rename_missing(self, registry):
        with pytest.raises(RegistryError) as exc:
            rename(registry, "Zenyatta", "Zenyatta II")
        assert exc.value.code == "not_found"


class TestUnmerge:
    def test_alias_becomes_independent(self, registry):
        registry = unmerge(registry, "2022 Ginger Punch", "ginger punch")
        assert registry["2022 Ginger Punch"]["aliases"] == []
        assert registry["Ginger Punch"]["owner"] == ""
        assert resolve("Ginger Punch", registry) == "Ginger Punch"

    def test_not_an_alias(self, registry):
        with pytest.raises(RegistryError) as exc:
            unmerge(registry, "Silver Streak", "Bold Venture (USA)")
        assert exc.value.code == "not_found"


class TestImport:
    def test_adds_and_updates(self, registry):
        registry, stats = import_entries(registry, [
            {"name": "Zenyatta", "owner": "Moss", "aliases": ["Zenyatta (USA)"]},
            {"name": "Silver Streak", "owner": "Calumet"},
        ])
        assert stats == {"added": 1, "updated": 1}
        assert registry["Zenyatta"]["aliases"] == ["Zenyatta (USA)"]
        assert registry["Silver Streak"]["owner"] == "Calumet"

    def test_conflicting_alias_changes_nothing(self, registry):
        before = copy.deepcopy(registry)
        with pytest.raises(RegistryError) as exc:
            import_entries(registry, [
                {"name": "Zenyatta"},
                {"name": "Ginger Snap", "aliases": ["Ginger Punch"]},
            ])
        assert exc.value.code == "alias_conflict"
        assert registry == before

    def test_alias_resolving_elsewhere_refused(self, registry):
        before = copy.deepcopy(registry)
        with pytest.raises(RegistryError) as exc:
            import_entries(registry, [{"name": "Zenyatta", "aliases": ["silver-streak"]}])
        assert exc.value.code == "alias_conflict"
        assert registry == before

    def test_alias_claimed_twice(self, registry):
        with pytest.raises(RegistryError):
            import_entries(registry, [
                {"name": "Zenyatta", "aliases": ["Z"]},
                {"name": "Zed", "aliases": ["Z"]},
            ])


class TestPartition:
    def test_holds_across_operations(self, split_registry):
        registry, _ = merge(split_registry, "2022 Ginger Punch", ["Ginger Punch"])
        registry = rename(registry, "2022 Ginger Punch", "Ginger Punch 2022")
        registry = unmerge(registry, "Ginger Punch 2022", "G Punch")
        registry, _ = add_or_update(registry, "Silver Streak")
        assert partition_violations(registry) == []

    @pytest.mark.parametrize("seed", range(30))
    def test_holds_across_random_sequences(self, registry, seed):
        rng = random.Random(seed)
        for _ in range(40):
            _random_step(rng, registry)
            assert partition_violations(registry) == []
            for canonical, entry in registry.items():
                for spelling in [canonical, *entry["aliases"]]:
                    assert resolve(spelling, registry) == canonical

    def test_detects_shared_spelling(self, registry):
        registry["Silver Streak"]["aliases"].append("Ginger Punch")
        assert partition_violations(registry) == ["Ginger Punch"]


class TestListing:
    def test_sorted_with_display_names(self, registry):
        listing = registry_listing(registry)
        assert [h["name"] for h in listing] == ["2022 Ginger Punch", "Bold Venture", "Silver Streak"]
        assert listing[0]["display_name"] == "Ginger Punch (22)"

    def test_selector_options(self, registry):
        options = selector_options(registry)
        assert {"name": "Silver Streak", "display_name": "Silver Streak"} in options
