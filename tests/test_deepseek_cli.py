#!/usr/bin/env python3
import sys, os, json, types, datetime, httpx, pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "python")))
import deepseek
import list_models
import service_status
from TranscriptStore import TranscriptStore
from Conversation import Conversation

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def sse(*fragments, done=True):
    lines = [f"data: {json.dumps({'choices': [{'delta': {'content': f}}]})}\n\n" for f in fragments]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()

class FakeApi:
    """Records chat requests and answers them with a canned stream."""
    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body if body is not None else sse("Hello", "!")
        self.requests = []

    def __call__(self, request):
        self.requests.append(json.loads(request.content))
        return httpx.Response(self.status, content=self.body)

@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test")
    monkeypatch.delenv("DEEPSEEK_ROLE", raising=False)
    history = tmp_path / "history.json"
    logs = tmp_path / "logs"
    api = FakeApi()
    real_client = deepseek.CompletionClient

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(api)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(deepseek, "CompletionClient", client_factory)

    def run(*argv):
        return deepseek.main(["--history-file", str(history), "-d", str(logs), *argv])

    return types.SimpleNamespace(run=run, history=history, api=api)

def read_history(path):
    return json.loads(path.read_text())

# -----------------------------------------------------------------------------
# Prompt submission
# -----------------------------------------------------------------------------

def test_first_prompt_creates_conversation(env, capsys):
    assert env.run("hello", "world") == 0
    assert capsys.readouterr().out == "Hello!\n"

    data = read_history(env.history)
    chat_id = data["last_chat_id"]
    assert len(chat_id) == 16
    assert data["history"][chat_id]["messages"] == [
        {"role": "system", "content": "You are a helpful assistant. Be concise."},
        {"role": "user", "content": "hello world"},
        {"role": "assistant", "content": "Hello!"},
    ]
    assert os.stat(env.history).st_mode & 0o777 == 0o600
    assert env.api.requests[0]["stream"] is True
    assert env.api.requests[0]["model"] == "deepseek-chat"

def test_second_prompt_continues_last_conversation(env):
    env.run("first")
    first_id = read_history(env.history)["last_chat_id"]
    env.api.body = sse("Again")
    assert env.run("-m", "deepseek-reasoner", "second") == 0

    data = read_history(env.history)
    assert data["last_chat_id"] == first_id
    assert [m["content"] for m in data["history"][first_id]["messages"]] == [
        "You are a helpful assistant. Be concise.", "first", "Hello!", "second", "Again",
    ]
    request = env.api.requests[-1]
    assert request["model"] == "deepseek-reasoner"
    assert [m["role"] for m in request["messages"]] == ["system", "user", "assistant", "user"]

def test_new_flag_starts_another_conversation(env):
    env.run("first")
    first_id = read_history(env.history)["last_chat_id"]
    env.run("--new", "second")

    data = read_history(env.history)
    assert data["last_chat_id"] != first_id
    assert set(data["history"]) == {first_id, data["last_chat_id"]}
    assert len(env.api.requests[-1]["messages"]) == 2

def test_chat_flag_selects_conversation(env):
    env.run("-c", "hello", "hi")
    env.run("-c", "other", "hi")
    env.run("-c", "hello", "again")

    data = read_history(env.history)
    assert data["last_chat_id"] == "hello"
    assert len(data["history"]["hello"]["messages"]) == 5
    assert len(data["history"]["other"]["messages"]) == 3

def test_system_role_from_environment(env, monkeypatch):
    monkeypatch.setenv("DEEPSEEK_ROLE", "Answer like a pirate.")
    env.run("hi")
    assert env.api.requests[0]["messages"][0] == {"role": "system", "content": "Answer like a pirate."}

def test_verbose_reports_chat_id(env, capsys):
    env.run("-v", "hi")
    assert "New chat-id generated:" in capsys.readouterr().err
    env.run("-v", "again")
    assert "Using last chat-id:" in capsys.readouterr().err

def test_missing_credential_is_fatal(env, monkeypatch, capsys):
    monkeypatch.delenv("DEEPSEEK_API_KEY")
    assert env.run("hi") == 1
    assert "DEEPSEEK_API_KEY" in capsys.readouterr().err
    assert env.api.requests == []
    assert not env.history.exists()

def test_missing_prompt_is_fatal(env, capsys):
    assert env.run() == 1
    assert "prompt" in capsys.readouterr().err
    assert env.api.requests == []

def test_api_error_saves_nothing(env, capsys):
    env.api.status = 402
    env.api.body = b'{"error":{"message":"Insufficient Balance"}}'
    assert env.run("hi") == 1
    assert "Insufficient Balance" in capsys.readouterr().err
    assert not env.history.exists()

def test_api_error_keeps_previous_history(env):
    env.run("-c", "keep", "hi")
    before = env.history.read_text()
    env.api.status = 500
    env.api.body = b"internal error"
    assert env.run("-c", "keep", "again") == 1
    assert env.history.read_text() == before

def test_truncated_stream_is_saved_with_warning(env, capsys):
    env.api.body = sse("half an ans", done=False)
    assert env.run("hi") == 0
    captured = capsys.readouterr()
    assert "[DONE]" in captured.err
    data = read_history(env.history)
    assert data["history"][data["last_chat_id"]]["messages"][-1] == {"role": "assistant", "content": "half an ans"}

# -----------------------------------------------------------------------------
# Listing, showing and removal
# -----------------------------------------------------------------------------

def seed_history(path):
    store = TranscriptStore(str(path))
    now = datetime.datetime.now(datetime.timezone.utc)
    for chat_id, age, question in [("old", 30, "ancient question"), ("recent", 1, "new\nquestion")]:
        chat = Conversation(created_at=now - datetime.timedelta(days=age))
        chat.append("system", "sys")
        chat.append("user", question)
        chat.append("assistant", "answer")
        store.put(chat_id, chat)
    store.last_chat_id = "old"
    store.save()

def test_list_shows_chats_newest_first(env, capsys):
    seed_history(env.history)
    before = env.history.read_text()
    assert env.run("--ls") == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split() == ["CHAT", "ID", "AGE", "CREATED", "AT", "LAST", "USER", "MESSAGE"]
    assert lines[1].split()[0] == "recent"
    assert "new question" in lines[1]
    assert lines[2].startswith("*")
    assert lines[2].split()[1] == "old"
    # listing never changes the history
    assert env.history.read_text() == before
    assert env.api.requests == []

def test_show_prints_transcript(env, capsys):
    seed_history(env.history)
    assert env.run("--show", "recent") == 0
    out = capsys.readouterr().out
    assert "[user]" in out
    assert "answer" in out
    assert read_history(env.history)["last_chat_id"] == "old"

def test_show_unknown_chat(env, capsys):
    seed_history(env.history)
    assert env.run("--show", "missing") == 1
    assert "not found" in capsys.readouterr().err

def test_remove_unknown_id(env, capsys):
    seed_history(env.history)
    before = env.history.read_text()
    assert env.run("--rm", "missing") == 0
    assert "not found" in capsys.readouterr().out
    assert env.history.read_text() == before

def test_remove_by_id(env, capsys):
    seed_history(env.history)
    env.run("--rm", "recent")
    assert "Chat ID: recent removed." in capsys.readouterr().out
    assert set(read_history(env.history)["history"]) == {"old"}

def test_remove_by_age(env, capsys):
    seed_history(env.history)
    env.run("--rm", "10 days")
    out = capsys.readouterr().out
    assert "Chat ID: old removed due to age." in out
    assert set(read_history(env.history)["history"]) == {"recent"}

def test_remove_by_age_nothing_to_do(env, capsys):
    seed_history(env.history)
    env.run("--rm", "90d")
    assert "No chats were removed" in capsys.readouterr().out
    assert set(read_history(env.history)["history"]) == {"old", "recent"}

def test_corrupt_history_falls_back_to_empty(env, capsys):
    env.history.write_text("garbage")
    assert env.run("--ls") == 0
    captured = capsys.readouterr()
    assert "Error parsing history file" in captured.err
    assert len(captured.out.splitlines()) == 1

@pytest.mark.parametrize("seconds, expected", [
    (0, "0s"),
    (59.6, "1m0s"),
    (3723, "1h2m3s"),
    (72 * 3600, "72h0m0s"),
])
def test_format_age(seconds, expected):
    assert deepseek.format_age(datetime.timedelta(seconds=seconds)) == expected

# -----------------------------------------------------------------------------
# Status and models
# -----------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self.payload = payload
        self.text = text or json.dumps(payload)
        self.reason = "OK" if status_code == 200 else "Error"

    def json(self):
        if self.payload is None:
            raise ValueError("no JSON")
        return self.payload

def test_status(env, monkeypatch, capsys):
    calls = []

    def fake_get(url, **kwargs):
        calls.append(url)
        return FakeResponse(200, {"status": {"indicator": "none", "description": "All Systems Operational"}})

    monkeypatch.setattr(service_status.requests, "get", fake_get)
    assert env.run("--status") == 0
    assert capsys.readouterr().out == "Service Status: none - All Systems Operational\n"
    assert calls == [service_status.DEFAULT_STATUS_URL]

def test_status_failure(monkeypatch, capsys):
    monkeypatch.setattr(service_status.requests, "get", lambda url, **kwargs: FakeResponse(503, text="down"))
    with pytest.raises(SystemExit) as excinfo:
        service_status.check_service_status()
    assert excinfo.value.code == 1
    assert "503" in capsys.readouterr().err

def test_models(env, monkeypatch, capsys):
    seen = {}

    def fake_get(url, headers=None, timeout=None):
        seen.update(url=url, headers=headers, timeout=timeout)
        return FakeResponse(200, {"object": "list", "data": [{"id": "deepseek-chat"}, {"id": "deepseek-reasoner"}]})

    monkeypatch.setattr(list_models.requests, "get", fake_get)
    assert env.run("--models") == 0
    assert capsys.readouterr().out.splitlines() == ["Available model IDs:", "deepseek-chat", "deepseek-reasoner"]
    assert seen["url"] == "https://api.deepseek.com/v1/models"
    assert seen["headers"] == {"Authorization": "Bearer sk-test"}
    assert seen["timeout"] == 10

def test_models_error_prints_body(monkeypatch, capsys):
    monkeypatch.setattr(list_models.requests, "get",
                        lambda url, headers=None, timeout=None: FakeResponse(401, text='{"error":"bad key"}'))
    with pytest.raises(SystemExit):
        list_models.list_deepseek_models("https://api.deepseek.com/v1", "sk-bad")
    assert "bad key" in capsys.readouterr().err
