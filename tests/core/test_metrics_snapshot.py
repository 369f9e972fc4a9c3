from tweakcore import metrics


def test_metrics_snapshot_counters_and_histograms():
    metrics.inc("hook_dispatch_total", {"hook": "OnTick"})
    metrics.inc("hook_dispatch_total", {"hook": "OnTick"})
    metrics.inc("module_init_failures_total", {"module": "FoodFix"})
    metrics.observe("hook_dispatch_ms", 2.0, {"hook": "OnTick"})
    metrics.observe("hook_dispatch_ms", 4.0, {"hook": "OnTick"})
    snap = metrics.snapshot()
    counters = snap["counters"]
    assert counters["hook_dispatch_total{hook=OnTick}"] == 2
    assert counters["module_init_failures_total{module=FoodFix}"] == 1
    hist = snap["histograms"]["hook_dispatch_ms{hook=OnTick}"]
    assert hist["count"] == 2
    assert (hist["min"], hist["max"], hist["last"]) == (2.0, 4.0, 4.0)


def test_metrics_labels_are_order_insensitive():
    metrics.inc("hook_callback_errors_total", {"module": "A", "hook": "H"})
    metrics.inc("hook_callback_errors_total", {"hook": "H", "module": "A"})
    assert metrics.get("hook_callback_errors_total", {"hook": "H", "module": "A"}) == 2
    assert "hook_callback_errors_total{hook=H,module=A}" in metrics.snapshot()["counters"]
    assert metrics.get("never_seen") == 0.0
