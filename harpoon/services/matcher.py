from typing import Mapping, Optional

from harpoon.core.config import WILDCARD_REF, Rule, RuleKey

PING_EVENT = "ping"


def resolve(rules: Mapping[RuleKey, Rule], event: str, repository: str, ref: str) -> Optional[Rule]:
    """
    Find the rule for an incoming event, most specific first:
    the exact (event, repository, ref) key, then (event, repository, "all").

    Pings never resolve to a rule.
    """
    if event == PING_EVENT:
        return None

    rule = rules.get(RuleKey(event, repository, ref))
    if rule is None:
        rule = rules.get(RuleKey(event, repository, WILDCARD_REF))
    return rule


def should_handle(rules: Mapping[RuleKey, Rule], event: str, repository: str, ref: str) -> bool:
    # pings are always accepted so GitHub can check reachability
    if event == PING_EVENT:
        return True
    return resolve(rules, event, repository, ref) is not None
