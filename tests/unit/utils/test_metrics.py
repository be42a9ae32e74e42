from one_time_share.utils import metrics


def test_counters_and_histograms_exported():
    metrics.inc("messages_consumed_total", outcome="ok")
    metrics.inc("messages_consumed_total", outcome="ok")
    metrics.inc("messages-purged.total", 3)
    metrics.observe("http_request_latency_seconds", 12.0, path="/save", method="POST")

    text = metrics.export_text()
    assert 'messages_consumed_total{outcome="ok"} 2.0' in text
    # dots/dashes sanitized
    assert "messages_purged_total 3.0" in text
    assert 'http_request_latency_seconds_count{method="POST",path="/save"} 1.0' in text


def test_non_positive_increment_is_ignored():
    metrics.inc("messages_purged_total", 0)
    assert "messages_purged_total" not in metrics.export_text()


def test_timer_observes():
    with metrics.timer("expiry_purge_seconds"):
        pass
    assert "expiry_purge_seconds_count 1.0" in metrics.export_text()


def test_reset_registry():
    metrics.inc("saved")
    metrics.reset_registry()
    assert "saved" not in metrics.export_text()
