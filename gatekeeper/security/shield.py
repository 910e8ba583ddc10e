"""
Decision engine.

Judges one request at a time and persists what it learns:

1. Known-bad robots are denied outright (nothing stored).
2. An existing allow/deny rule for the IP short-circuits everything else.
3. Otherwise the IP goes through anomaly detection: verified search engines
   are promoted to a permanent allow rule, everyone else accumulates
   pageview and anomaly counters until a threshold turns them into a deny
   rule.

Usage:
    from gatekeeper.security import Shield, RequestContext
    from gatekeeper.stores import MemoryStore

    shield = Shield(store=MemoryStore())
    decision = shield.run(RequestContext(ip="203.0.113.7", referer=referer))

    if not decision.allowed:
        # 403
        pass
"""

import logging
import time
from typing import Callable, Optional

from .codes import Action, Reason, RecordKind, TimeUnit
from .context import RequestContext
from .errors import CollaboratorError, ConfigurationError, StoreError
from .interfaces import NullRobotClassifier, RobotClassifier, RuleList, RuleStatus, Store
from .ip_rules import IpRuleList
from .locks import KeyedLock
from .records import CounterRecord, Decision, Verdict
from .settings import ShieldSettings, StoreErrorPolicy

logger = logging.getLogger(__name__)

LOG = RecordKind.LOG.value
RULE = RecordKind.RULE.value


class Shield:
    """
    Per-request access-control decision engine.

    Collaborators are fixed at construction. Without a classifier robot
    detection is disabled; without a rule list an empty ``IpRuleList`` is
    used, which answers from stored rules only. A store is required before
    ``run`` but may be attached later with ``set_store``.
    """

    def __init__(
        self,
        store: Optional[Store] = None,
        classifier: Optional[RobotClassifier] = None,
        rule_list: Optional[RuleList] = None,
        settings: Optional[ShieldSettings] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.settings = settings or ShieldSettings()

        self._store: Optional[Store] = None
        if store is not None:
            self.set_store(store)

        classifier = classifier if classifier is not None else NullRobotClassifier()
        if not isinstance(classifier, RobotClassifier):
            raise CollaboratorError("RobotClassifier", classifier)
        self.classifier = classifier

        rule_list = rule_list if rule_list is not None else IpRuleList()
        if not isinstance(rule_list, RuleList):
            raise CollaboratorError("RuleList", rule_list)
        self.rule_list = rule_list

        self._clock = clock or time.time
        self._locks = KeyedLock()

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def set_store(self, store: Store) -> "Shield":
        if not isinstance(store, Store):
            raise CollaboratorError("Store", store)
        self._store = store
        return self

    @property
    def store(self) -> Store:
        if self._store is None:
            raise ConfigurationError("No store configured; call set_store() before run()")
        return self._store

    def set_channel(self, channel: str) -> "Shield":
        """Select the store namespace. Requires a store."""
        if self._store is None:
            raise ConfigurationError("set_channel() requires a store to be set first")
        self._store.set_channel(channel)
        return self

    def close(self) -> None:
        """Release connections held by the store, if it holds any."""
        close = getattr(self._store, "close", None)
        if close is not None:
            close()

    def create_database(self, enabled: bool) -> "Shield":
        """Toggle schema creation on first use."""
        self.settings.create_schema = enabled
        return self

    def _now(self, now: Optional[float]) -> int:
        return int(now if now is not None else self._clock())

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def run(self, ctx: RequestContext, now: Optional[float] = None) -> Decision:
        """
        Decide a request.

        Store failures do not escape: the returned Decision carries the error
        and follows ``settings.on_store_error``.

        Raises:
            ConfigurationError: no store has been configured
        """
        store = self.store
        now = self._now(now)
        try:
            store.init(self.settings.create_schema)
            return self._run(ctx, now)
        except StoreError as e:
            logger.error(f"Store error while deciding ip={ctx.ip}: {e}")
            if self.settings.on_store_error == StoreErrorPolicy.DENY:
                return Decision(Action.DENY, error=e)
            return Decision(Action.ALLOW, error=e)

    def _run(self, ctx: RequestContext, now: int) -> Decision:
        if self.classifier.is_denied_agent(ctx):
            logger.warning(f"Denied agent: ip={ctx.ip} user_agent={ctx.user_agent[:100]}")
            return Decision.deny()

        lookup = self.rule_list.lookup(ctx.ip, lambda: self._load_verdict(ctx.ip))
        if lookup.status == RuleStatus.DENY:
            logger.debug(f"Rule list deny: ip={ctx.ip} code={lookup.code}")
            return Decision.deny()
        if lookup.status == RuleStatus.ALLOW:
            return Decision.allow()

        if not self.settings.enable_filtering:
            return Decision.allow()

        return self.detect(ctx, now, rule_listed=lookup.is_listed)

    def _load_verdict(self, ip: str) -> Optional[Verdict]:
        return Verdict.from_dict(self.store.get(ip, RULE))

    def detect(
        self,
        ctx: RequestContext,
        now: Optional[float] = None,
        rule_listed: bool = False,
    ) -> Decision:
        """
        Promote verified crawlers, otherwise update counters and check thresholds.

        ``run`` calls this only for addresses no rule list answers for. Callers
        that consult their own lists and call ``detect`` directly pass
        ``rule_listed=True`` for a listed address, so a verified crawler is
        still allowed but no rule is written over the list entry.
        """
        now = self._now(now)

        if self.classifier.is_allowed_agent(ctx):
            reason = self._crawler_reason(ctx)
            if not rule_listed:
                self.action(Action.ALLOW, reason, ctx, now=now)
                logger.info(f"Allowed verified crawler: ip={ctx.ip} reason={reason.name}")
            return Decision.allow(reason)

        with self._locks.hold(ctx.ip):
            return self._detect_anomalies(ctx, now)

    def _crawler_reason(self, ctx: RequestContext) -> Reason:
        if self.classifier.is_google(ctx):
            return Reason.IS_GOOGLE
        if self.classifier.is_bing(ctx):
            return Reason.IS_BING
        if self.classifier.is_yahoo(ctx):
            return Reason.IS_YAHOO
        return Reason.IS_SEARCH_ENGINE

    def _detect_anomalies(self, ctx: RequestContext, now: int) -> Decision:
        settings = self.settings

        # Decided while this request waited for the lock.
        verdict = self._load_verdict(ctx.ip)
        if verdict is not None:
            return Decision.allow() if verdict.is_allow else Decision.deny()

        record = CounterRecord.from_dict(self.store.get(ctx.ip, LOG))

        if record is None:
            record = CounterRecord.first_sight(ctx.ip, now, ctx.session, ctx.hostname)
            self.store.save(ctx.ip, record.to_dict(), LOG)
            return Decision.allow()

        since_last = now - record.last_time
        for unit in TimeUnit:
            record.pageviews[unit] += 1

        # Someone already browsing the site sends a referer with every click.
        if settings.enable_referer_check and since_last <= settings.interval_check_referer:
            if not ctx.referer:
                record.flag_empty_referer += 1
            if record.flag_empty_referer >= settings.limit_flags["referer"]:
                return self._deny(ctx, Reason.EMPTY_REFERER, now)

        # A new session on every request means cookies are not kept.
        if settings.enable_session_check and since_last <= settings.interval_check_session:
            if ctx.session != record.session:
                record.flag_multi_session += 1
            if record.flag_multi_session >= settings.limit_flags["session"]:
                return self._deny(ctx, Reason.TOO_MANY_SESSIONS, now)

        clear_cookie = False
        if settings.enable_cookie_check:
            if ctx.cookie(settings.cookie_name) == settings.cookie_value:
                record.pageviews_cookie += 1
            else:
                record.flag_js_cookie += 1

            if record.flag_js_cookie >= settings.limit_flags["cookie"]:
                return self._deny(ctx, Reason.EMPTY_JS_COOKIE, now)

            # Make the script prove itself again.
            if record.pageviews_cookie > settings.limit_flags["cookie"]:
                record.pageviews_cookie = 0
                record.flag_js_cookie = 0
                clear_cookie = True

        if settings.enable_frequency_check:
            expired: list[TimeUnit] = []
            for unit in TimeUnit:
                limit = settings.time_period_units.get(unit)
                if limit is None:
                    continue
                if now - record.first_time[unit] >= unit.period + 1:
                    expired.append(unit)
                elif record.pageviews[unit] >= limit:
                    return self._deny(ctx, unit.limit_reason, now)

            for unit in expired:
                record.reset_bucket(unit, now)

        record.reset_flags(now, settings.time_reset_flags)

        record.session = ctx.session
        record.hostname = ctx.hostname
        record.last_time = now
        self.store.save(ctx.ip, record.to_dict(), LOG)
        return Decision.allow(clear_cookie=clear_cookie)

    def _deny(self, ctx: RequestContext, reason: Reason, now: int) -> Decision:
        # Caller holds the lock for ctx.ip.
        self._apply_action(Action.DENY, reason, ctx.ip, ctx.hostname, now)
        logger.warning(f"Denied: ip={ctx.ip} reason={reason.name} hostname={ctx.hostname or '-'}")
        return Decision.deny(reason)

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def action(
        self,
        action: Action,
        reason: int,
        ctx: Optional[RequestContext] = None,
        ip: Optional[str] = None,
        now: Optional[float] = None,
    ) -> None:
        """
        Persist a decision for an IP and drop its counters.

        Args:
            action: ALLOW or DENY writes a rule, UNBAN removes it
            reason: Reason code stored with the rule
            ctx: Current request; supplies the IP and hostname by default
            ip: Target IP when it is not the current request's
        """
        target = ip or (ctx.ip if ctx is not None else "")
        if not target:
            raise ValueError("action() needs an ip or a request context")
        hostname = ctx.hostname if ctx is not None and ctx.ip == target else ""

        with self._locks.hold(target):
            self._apply_action(action, reason, target, hostname, now)

    def _apply_action(
        self,
        action: Action,
        reason: int,
        target: str,
        hostname: str,
        now: Optional[float],
    ) -> None:
        if action in (Action.ALLOW, Action.DENY):
            verdict = Verdict(
                ip=target,
                hostname=hostname,
                time=self._now(now),
                type=action,
                reason=int(reason),
            )
            self.store.save(target, verdict.to_dict(), RULE)
        elif action == Action.UNBAN:
            self.store.delete(target, RULE)
            self.rule_list.remove_from_list(target, RuleStatus.DENY.value)

        # A decided IP has no use for counters; an unbanned one starts over.
        self.store.delete(target, LOG)

    def ban(self, ip: str = "", ctx: Optional[RequestContext] = None) -> "Shield":
        """Deny an IP permanently. Defaults to the current request's IP."""
        target = ip or (ctx.ip if ctx is not None else "")
        if not target:
            raise ValueError("ban() needs an ip or a request context")
        self.rule_list.add_to_deny_list(target)
        self.action(Action.DENY, Reason.MANUAL_BAN, ctx, ip=target)
        logger.info(f"Manual ban: ip={target}")
        return self

    def unban(self, ip: str = "", ctx: Optional[RequestContext] = None) -> "Shield":
        """Lift a ban. Defaults to the current request's IP."""
        target = ip or (ctx.ip if ctx is not None else "")
        if not target:
            raise ValueError("unban() needs an ip or a request context")
        self.action(Action.UNBAN, Reason.MANUAL_BAN, ctx, ip=target)
        logger.info(f"Manual unban: ip={target}")
        return self
