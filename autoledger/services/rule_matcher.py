"""Rule matching and priority resolution.

Pure functions, no I/O. A rule matches a transaction when the transaction
type, the amount range and the keyword filter all pass.

Keyword matching is deliberately loose: a keyword matches when it equals a
whitespace-separated word of the description *or* appears anywhere in it as
a substring, so a short keyword like "카페" also fires inside longer words.
"""

import structlog

from autoledger.services.rule_types import (
    Rule,
    RuleKeyword,
    TransactionData,
    TransactionType,
)

logger = structlog.get_logger()


def evaluate(txn: TransactionData, rule: Rule) -> bool:
    """Return True if ``rule`` matches ``txn``."""
    if not check_transaction_type(txn, rule.transaction_type):
        return False
    if not check_amount_range(txn, rule):
        return False
    return check_keywords(txn, rule)


def check_transaction_type(txn: TransactionData, transaction_type: TransactionType) -> bool:
    if transaction_type == TransactionType.ALL:
        return True

    is_deposit = txn.deposit_amount > 0
    is_withdrawal = txn.withdrawal_amount > 0

    if transaction_type == TransactionType.DEPOSIT:
        return is_deposit and not is_withdrawal
    if transaction_type == TransactionType.WITHDRAWAL:
        return is_withdrawal and not is_deposit
    return True


def check_amount_range(txn: TransactionData, rule: Rule) -> bool:
    """Bounds are inclusive; a missing bound imposes nothing."""
    amount = txn.amount
    if rule.min_amount is not None and amount < rule.min_amount:
        return False
    if rule.max_amount is not None and amount > rule.max_amount:
        return False
    return True


def check_keywords(txn: TransactionData, rule: Rule) -> bool:
    if not rule.keywords:
        return True

    description = txn.description.lower().strip()

    # Any exclude keyword vetoes the rule
    for kw in rule.exclude_keywords:
        keyword = _normalize(kw)
        if is_keyword_match(description, keyword):
            logger.debug("rule_excluded_by_keyword", rule_id=rule.rule_id, keyword=keyword)
            return False

    include = rule.include_keywords
    if not include:
        return True

    for kw in include:
        keyword = _normalize(kw)
        if is_keyword_match(description, keyword):
            logger.debug("rule_matched_by_keyword", rule_id=rule.rule_id, keyword=keyword)
            return True
    return False


def is_keyword_match(description: str, keyword: str) -> bool:
    """Whole-word match or substring match. Both arguments already lower-cased."""
    if keyword in description.split():
        return True
    return keyword in description


def find_matching_rules(txn: TransactionData, rules: list[Rule]) -> list[Rule]:
    """Rules matching ``txn``, in the order they were given."""
    return [rule for rule in rules if evaluate(txn, rule)]


def select_best_rule(matched_rules: list[Rule]) -> Rule:
    """Lowest priority value wins; ties keep input order (stable sort)."""
    if not matched_rules:
        raise ValueError("select_best_rule() needs at least one rule")
    return sorted(matched_rules, key=lambda r: r.priority)[0]


def matched_keywords(txn: TransactionData, rule: Rule) -> list[str]:
    """Include keywords of ``rule`` that appear in the description, as written in the rule."""
    description = txn.description.lower()
    return [kw.keyword for kw in rule.include_keywords if kw.keyword.lower() in description]


def _normalize(kw: RuleKeyword) -> str:
    return kw.keyword.lower().strip()
