from absexporter.metrics import MetricSink
from absexporter.models import DeviceKey, LibraryKey, Rollups


def test_publish_rollups_replaces_previous_labels():
    sink = MetricSink()
    sink.publish_rollups(
        Rollups(
            seconds_by_user={"alice": 120.0, "bob": 30.0},
            count_by_user={"alice": 2, "bob": 1},
            seconds_by_device={DeviceKey("Web", "Firefox"): 150.0},
            total_sessions=3,
        )
    )
    sink.publish_rollups(
        Rollups(seconds_by_user={"alice": 60.0}, count_by_user={"alice": 1}, total_sessions=1)
    )

    assert sink.sample("user_listening_seconds_total", {"user": "alice"}) == 60.0
    assert sink.sample("user_listening_seconds_total", {"user": "bob"}) is None
    assert sink.sample("user_sessions_total", {"user": "bob"}) is None
    assert (
        sink.sample("device_listening_seconds_total", {"client": "Web", "model": "Firefox"})
        is None
    )
    assert sink.sample("sessions_total") == 1


def test_replace_library_items():
    sink = MetricSink()
    sink.replace_library_items({LibraryKey("lib-1", "Audiobooks"): 12})
    assert (
        sink.sample("library_items_total", {"library_id": "lib-1", "library_name": "Audiobooks"})
        == 12
    )

    sink.replace_library_items({})
    assert "audiobookshelf_library_items_total{" not in sink.render().decode()


def test_scrape_flags():
    sink = MetricSink()

    sink.mark_scrape_started()
    sink.mark_scrape_finished(False, timestamp=1700000000.0, duration=0.5)
    assert sink.sample("up") == 0
    assert sink.sample("last_scrape_success") == 0
    assert sink.sample("last_scrape_timestamp_seconds") == 1700000000.0

    sink.mark_scrape_started()
    sink.mark_scrape_finished(True, timestamp=1700000030.0, duration=0.25)
    assert sink.sample("up") == 1
    assert sink.sample("last_scrape_success") == 1
    assert sink.sample("scrape_duration_seconds_count") == 2
    assert sink.sample("scrape_duration_seconds_sum") == 0.75


def test_sinks_do_not_share_a_registry():
    first = MetricSink()
    second = MetricSink()
    first.set_user_count(5)

    assert first.sample("users_total") == 5
    assert second.sample("users_total") == 0


def test_render_exposition_text():
    sink = MetricSink()
    sink.publish_rollups(
        Rollups(seconds_by_library={LibraryKey("lib-1", "Audiobooks"): 90.0}, total_sessions=1)
    )

    body = sink.render().decode()

    assert "# TYPE audiobookshelf_up gauge" in body
    assert (
        'audiobookshelf_library_listening_seconds_total{library_id="lib-1",'
        'library_name="Audiobooks"} 90.0'
    ) in body
    assert "audiobookshelf_sessions_total 1.0" in body
