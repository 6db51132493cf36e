from budget_core.events import LEDGER_CHANGED, OVERSPENT, Event, EventBus


def test_publish_without_subscribers():
    assert EventBus().publish(LEDGER_CHANGED, {"month": "2024-03"}) == []


def test_handlers_run_in_order_and_results_are_collected():
    bus = EventBus()
    seen = []

    def first(event: Event, payload: dict) -> dict:
        seen.append(event.name)
        return {"first": payload["month"]}

    def second(event: Event, payload: dict) -> dict:
        return {"ts": bool(event.ts)}

    bus.subscribe(OVERSPENT, first)
    bus.subscribe(OVERSPENT, second)
    results = bus.publish(OVERSPENT, {"month": "2024-03"})

    assert results == [{"first": "2024-03"}, {"ts": True}]
    assert seen == [OVERSPENT]


def test_unsubscribe():
    bus = EventBus()

    def handler(event, payload):
        return {"called": True}

    bus.subscribe(LEDGER_CHANGED, handler)
    bus.unsubscribe(LEDGER_CHANGED, handler)
    bus.unsubscribe(LEDGER_CHANGED, handler)
    assert bus.publish(LEDGER_CHANGED, {}) == []
    assert bus.handlers(LEDGER_CHANGED) == []


def test_handler_may_unsubscribe_itself():
    bus = EventBus()

    def once(event, payload):
        bus.unsubscribe(LEDGER_CHANGED, once)
        return {"once": True}

    def always(event, payload):
        return {"always": True}

    bus.subscribe(LEDGER_CHANGED, once)
    bus.subscribe(LEDGER_CHANGED, always)
    assert bus.publish(LEDGER_CHANGED, {}) == [{"once": True}, {"always": True}]
    assert bus.publish(LEDGER_CHANGED, {}) == [{"always": True}]
