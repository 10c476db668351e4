import io

import requests

from notifications import AudioCue, NullNotifier, SmsNotifier

def test_sms_simulation_records_history():
    notifier = SmsNotifier()
    notifier.send("+1 (555) 010-1001", "Emma Thompson has arrived at school safely.")

    history = notifier.get_history()
    assert len(history) == 1
    assert history[0]['to'] == "+1 (555) 010-1001"
    assert history[0]['body'].startswith("Emma Thompson")

def test_sms_history_is_bounded():
    notifier = SmsNotifier(history_size=3)
    for i in range(5):
        notifier.send("+1", f"message {i}")

    assert [m['body'] for m in notifier.get_history()] == ["message 2", "message 3", "message 4"]

def test_gateway_failure_is_logged_not_raised(monkeypatch):
    notifier = SmsNotifier(gateway_url="http://sms.invalid/send")

    def refuse(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(notifier._session, "post", refuse)
    notifier._post("+1", "hello")

    assert notifier.failures == 1

def test_gateway_receives_json_payload(monkeypatch):
    notifier = SmsNotifier(gateway_url="http://sms.example/send", timeout=2.0)
    calls = []

    class Accepted:
        def raise_for_status(self):
            pass

    def post(url, json=None, timeout=None):
        calls.append((url, json, timeout))
        return Accepted()

    monkeypatch.setattr(notifier._session, "post", post)
    notifier._post("+1 (555) 010-1002", "Liam Wilson has left school safely.")

    assert calls == [("http://sms.example/send",
                      {'to': "+1 (555) 010-1002", 'body': "Liam Wilson has left school safely."},
                      2.0)]
    assert notifier.failures == 0

def test_null_notifier_accepts_messages():
    NullNotifier().send("+1", "ignored")

def test_audio_cue_rings_bell():
    stream = io.StringIO()
    AudioCue(stream=stream).play()
    assert stream.getvalue() == "\a"

def test_disabled_audio_cue_is_silent():
    stream = io.StringIO()
    AudioCue(enabled=False, stream=stream).play()
    assert stream.getvalue() == ""

def test_audio_cue_swallows_closed_stream():
    stream = io.StringIO()
    stream.close()
    AudioCue(stream=stream).play()
