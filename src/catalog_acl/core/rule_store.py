"""
Data Access Rule Store

Ordered, mutable collection of data access rules plus the catalog mode entry.

Supports:
- add/remove with (root, layer, mode) uniqueness
- lookup of the rules granting a given role
- round trip to the textual `key=value` form (properties files)
- a revision counter so derived indexes know when to rebuild
"""

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Tuple, Union

from ..errors import DuplicateRuleKey, MalformedRuleKey
from .rules import ANY, EVERYBODY, MODE_KEY, DataAccessRule, parse_rule

if TYPE_CHECKING:
    from .catalog import Catalog

logger = logging.getLogger(__name__)


class CatalogMode(str, Enum):
    """How resources the principal cannot read are presented"""
    HIDE = "HIDE"            # Pretend the resource does not exist
    CHALLENGE = "CHALLENGE"  # Show metadata, demand authentication on data access
    MIXED = "MIXED"          # Hide in listings, challenge on direct access

    @classmethod
    def parse(cls, value: str) -> "CatalogMode":
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Unknown catalog mode: {value}")


def parse_properties(text: str) -> Dict[str, str]:
    """
    Parse line oriented `key=value` text.

    Blank lines and lines starting with `#` or `!` are skipped. The first `=`
    (or `:` when there is no `=`) separates key and value. Backslashes are kept
    verbatim so escaped dots survive.
    """
    entries: Dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped[0] in "#!":
            continue
        if "=" in stripped:
            key, _, value = stripped.partition("=")
        elif ":" in stripped:
            key, _, value = stripped.partition(":")
        else:
            key, value = stripped, ""
        entries[key.strip()] = value.strip()
    return entries


class DataAccessRuleStore:
    """
    In-memory rule store.

    All mutations bump `revision`; readers get copies, never the live list.
    """

    def __init__(self, catalog_mode: CatalogMode = CatalogMode.HIDE):
        self._rules: List[DataAccessRule] = []
        self._keys: Dict[tuple, DataAccessRule] = {}
        self._catalog_mode = catalog_mode
        self._lock = threading.RLock()
        self._revision = 0

    @classmethod
    def from_properties(cls, properties: Mapping[str, str], strict: bool = False) -> "DataAccessRuleStore":
        """Create a store from a `key -> roles` mapping"""
        store = cls()
        store.load_properties(properties, strict=strict)
        return store

    @classmethod
    def from_file(cls, path: Union[str, Path], strict: bool = False) -> "DataAccessRuleStore":
        """Create a store from a properties file"""
        store = cls()
        store.load_file(path, strict=strict)
        return store

    # =========================================================================
    # State
    # =========================================================================

    @property
    def revision(self) -> int:
        """Monotonic counter, incremented on every change"""
        return self._revision

    @property
    def catalog_mode(self) -> CatalogMode:
        return self._catalog_mode

    @catalog_mode.setter
    def catalog_mode(self, mode: CatalogMode) -> None:
        with self._lock:
            self._catalog_mode = mode
            self._touch()

    def _touch(self) -> None:
        self._revision += 1

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self.get_rules())

    # =========================================================================
    # Rule operations
    # =========================================================================

    def add_rule(self, rule: DataAccessRule) -> bool:
        """
        Add a rule.

        Returns:
            False (store unchanged) if a rule with the same key exists, True otherwise
        """
        with self._lock:
            if rule.rule_key in self._keys:
                logger.debug(f"Rule {rule.key} already present, not adding")
                return False
            self._rules.append(rule)
            self._keys[rule.rule_key] = rule
            self._touch()
            return True

    def remove_rule(self, rule: DataAccessRule) -> bool:
        """
        Remove a rule, compared by full equality (key and roles).

        Returns:
            False if no equal rule is stored
        """
        with self._lock:
            if self._keys.get(rule.rule_key) != rule:
                return False
            self._rules.remove(rule)
            del self._keys[rule.rule_key]
            self._touch()
            return True

    def replace_rule(self, old: DataAccessRule, new: DataAccessRule) -> bool:
        """Swap a stored rule for an edited copy, keeping its position"""
        with self._lock:
            if self._keys.get(old.rule_key) != old:
                return False
            if new.rule_key != old.rule_key and new.rule_key in self._keys:
                return False
            index = self._rules.index(old)
            self._rules[index] = new
            del self._keys[old.rule_key]
            self._keys[new.rule_key] = new
            self._touch()
            return True

    def get_rule(self, root: str, layer: Optional[str], access_mode) -> Optional[DataAccessRule]:
        """Get the rule stored under a key, if any"""
        lookup = DataAccessRule(root, layer, access_mode)
        return self._keys.get(lookup.rule_key)

    def get_rules(self) -> List[DataAccessRule]:
        """Rules in insertion order"""
        with self._lock:
            return list(self._rules)

    def get_rules_associated_with_role(self, role: str) -> List[DataAccessRule]:
        """Rules whose role set names `role` exactly. EVERYBODY never matches a name."""
        if role == EVERYBODY:
            return []
        return [rule for rule in self.get_rules() if role in rule.roles]

    def clear(self) -> None:
        with self._lock:
            self._rules.clear()
            self._keys.clear()
            self._touch()

    # =========================================================================
    # Textual form
    # =========================================================================

    def load_properties(
        self,
        properties: Mapping[str, str],
        strict: bool = False
    ) -> List[Tuple[str, str]]:
        """
        Parse and add every entry of a `key -> roles` mapping.

        The reserved `mode` key sets the catalog mode. Entries are parsed as a
        batch first; in strict mode a rejected batch leaves the store unchanged.

        Args:
            properties: Raw entries
            strict: Raise on the first malformed or duplicate entry instead of skipping it

        Returns:
            (key, reason) for each rejected entry
        """
        rejected: List[Tuple[str, str]] = []
        staged: Dict[tuple, DataAccessRule] = {}
        mode: Optional[CatalogMode] = None

        with self._lock:
            for key, value in properties.items():
                if isinstance(value, (list, tuple, set)):
                    value = ",".join(str(v) for v in value)
                elif value is None:
                    value = ""
                key, value = str(key), str(value)
                if key.strip() == MODE_KEY:
                    try:
                        mode = CatalogMode.parse(value)
                    except ValueError as e:
                        if strict:
                            raise
                        logger.warning(f"Ignoring catalog mode entry: {e}")
                        rejected.append((key, str(e)))
                    continue

                try:
                    rule = parse_rule(key, value)
                except MalformedRuleKey as e:
                    if strict:
                        raise
                    logger.warning(f"Skipping rule: {e}")
                    rejected.append((key, e.reason))
                    continue

                if rule.rule_key in self._keys or rule.rule_key in staged:
                    if strict:
                        raise DuplicateRuleKey(rule.key)
                    logger.warning(f"Skipping duplicate rule {rule.key}")
                    rejected.append((key, "duplicate rule key"))
                    continue
                staged[rule.rule_key] = rule

            # Commit
            if mode is not None:
                self._catalog_mode = mode
            for rule_key, rule in staged.items():
                self._rules.append(rule)
                self._keys[rule_key] = rule
            self._touch()

        logger.info(f"Loaded {len(self._rules)} data access rules (catalog mode {self._catalog_mode.value})")
        return rejected

    def load_text(self, text: str, strict: bool = False) -> List[Tuple[str, str]]:
        """Load rules from properties formatted text"""
        return self.load_properties(parse_properties(text), strict=strict)

    def load_file(self, path: Union[str, Path], strict: bool = False) -> List[Tuple[str, str]]:
        """Load rules from a properties file"""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Rules file not found: {path}")

        logger.info(f"Loading data access rules from {path}")
        return self.load_text(path.read_text(encoding="utf-8"), strict=strict)

    def to_properties(self) -> Dict[str, str]:
        """Serialize rules with escaped keys, mode entry first"""
        properties = {MODE_KEY: self._catalog_mode.value}
        for rule in self.get_rules():
            properties[rule.key] = rule.value
        return properties

    def save_properties(self, path: Union[str, Path]) -> Path:
        """Write the store as a properties file, keys sorted after the mode entry"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        properties = self.to_properties()
        lines = [f"{MODE_KEY}={properties.pop(MODE_KEY)}"]
        lines.extend(f"{key}={properties[key]}" for key in sorted(properties))

        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.debug(f"Saved {len(self._rules)} data access rules to {path}")
        return path


def is_dead_rule(rule: DataAccessRule, catalog: "Catalog") -> bool:
    """True when the rule's workspace, layer or global group does not exist"""
    if rule.root == ANY:
        return False

    if rule.is_global_group_rule:
        return catalog.get_layer_group_by_name(rule.root) is None

    if catalog.get_workspace_by_name(rule.root) is None:
        return True
    if rule.layer == ANY:
        return False
    return (
        catalog.get_layer_by_name(rule.layer, workspace=rule.root) is None
        and catalog.get_layer_group_by_name(rule.layer, workspace=rule.root) is None
    )


class CatalogAwareRuleStore(DataAccessRuleStore):
    """
    Rule store that can tell which rules point at missing catalog objects.

    Dead rules are kept and returned like any other rule.
    """

    def __init__(self, catalog: "Catalog", catalog_mode: CatalogMode = CatalogMode.HIDE):
        super().__init__(catalog_mode=catalog_mode)
        self.catalog = catalog

    def is_dead(self, rule: DataAccessRule) -> bool:
        return is_dead_rule(rule, self.catalog)

    def get_dead_rules(self) -> List[DataAccessRule]:
        return [rule for rule in self.get_rules() if self.is_dead(rule)]
