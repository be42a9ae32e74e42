from one_time_share.utils.time import iso_utc, minutes_to_sec, now_sec


def test_now_is_whole_seconds():
    assert isinstance(now_sec(), int)


def test_minutes_to_sec():
    assert minutes_to_sec(5) == 300
    assert minutes_to_sec(0) == 0


def test_iso_utc():
    assert iso_utc(0) == "1970-01-01T00:00:00+00:00"
