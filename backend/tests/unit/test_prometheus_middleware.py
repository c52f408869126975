from bookati.middleware.prometheus_middleware import normalize_path


def test_ulid_and_numeric_segments_are_collapsed():
    assert (
        normalize_path("/api/v1/bookings/01HF4G12ABCDEF3456789XYZAB/status")
        == "/api/v1/bookings/:id/status"
    )
    assert normalize_path("/api/v1/slots/42") == "/api/v1/slots/:id"


def test_static_paths_are_unchanged():
    assert normalize_path("/api/v1/booking-locks/sweep") == "/api/v1/booking-locks/sweep"
