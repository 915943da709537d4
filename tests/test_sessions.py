from datetime import timedelta

from conftest import NOW, assistant, ms, user, write_jsonl
from fleetdeck.models import ActivitySummary
from fleetdeck.roster import AgentId, blank_record
from fleetdeck.sessions import (
    assemble_agents,
    fetch_sessions,
    merge_agent_dirs,
    merge_dir_activity,
    merge_main_sessions,
    merge_run_registry,
    run_progress,
    run_status,
)


def summary(ts, task="", tokens_in=0, tokens_out=0, calls=0, model=""):
    return ActivitySummary(last_timestamp=ts, last_task=task, model=model,
                           tokens_in=tokens_in, tokens_out=tokens_out, api_calls=calls)


# ── Pass 1 ────────────────────────────────────────────────────────────────────

def test_main_pass_sums_counters_and_keeps_newest_status(fleet_root):
    acc = {}
    merge_main_sessions(acc, fleet_root / "agents" / "main" / "sessions", NOW, "fallback-model")

    lead = acc[AgentId.KIRA]
    assert lead.status == "active"
    assert lead.current_task == "Please review the quarterly plan"
    assert lead.last_seen == NOW - timedelta(minutes=1)
    assert lead.model == "claude-opus-4"
    assert lead.session_id == "agent:main:main"
    assert lead.tokens_used == 175 + 15
    assert lead.api_calls == 2


def test_main_pass_skips_files_without_session_header(tmp_path):
    d = tmp_path / "sessions"
    write_jsonl(d / "raw.jsonl", [assistant(NOW, usage={"output": 99})], header=False)
    acc = {}
    merge_main_sessions(acc, d, NOW)
    assert acc[AgentId.KIRA].tokens_used == 0
    assert acc[AgentId.KIRA].status == "offline"


def test_main_pass_uses_default_model_and_task(tmp_path):
    d = tmp_path / "sessions"
    write_jsonl(d / "a.jsonl", [assistant(NOW, text="ok")])
    acc = {}
    merge_main_sessions(acc, d, NOW, "configured-model")
    assert acc[AgentId.KIRA].model == "configured-model"
    assert acc[AgentId.KIRA].current_task == "Main session"


def test_main_pass_caps_file_count(tmp_path):
    d = tmp_path / "sessions"
    for i in range(20):
        write_jsonl(d / f"s{i:02d}.jsonl", [assistant(NOW, usage={"output": 1})], mtime=1_000 + i)
    acc = {}
    merge_main_sessions(acc, d, NOW)
    assert acc[AgentId.KIRA].api_calls == 15


def test_main_pass_without_directory_leaves_accumulator_empty(tmp_path):
    acc = {}
    merge_main_sessions(acc, tmp_path / "missing", NOW)
    assert acc == {}


# ── Pass 2 ────────────────────────────────────────────────────────────────────

def test_run_status_and_progress_follow_outcome():
    assert run_status({}) == "running"
    assert run_progress(run_status({})) == 0.5
    assert run_status({"outcome": {"status": "ok"}}) == "completed"
    assert run_progress("completed") == 1.0
    assert run_status({"outcome": {"status": "timeout"}}) == "error"
    assert run_progress("error") == 0.0
    # An outcome that is present but empty is still a finished run.
    assert run_status({"outcome": {}}) == "error"
    assert run_status({"outcome": []}) == "error"
    assert run_progress(run_status({"outcome": {}})) == 0.0
    assert run_status({"outcome": None}) == "running"


def test_run_pass_attributes_runs_to_owners(fleet_root):
    import json
    runs_doc = json.loads((fleet_root / "subagents" / "runs.json").read_text())
    acc = {}
    runs = merge_run_registry(acc, runs_doc, NOW)

    forge = acc[AgentId.FORGE]
    assert forge.status == "active"
    assert forge.current_task == "forge-refactor-auth"
    assert forge.last_seen == NOW
    assert forge.session_id == "agent:main:subagent:aaaaaaaa-1111"

    echo = acc[AgentId.ECHO]
    assert echo.status == "idle"
    assert echo.current_task == "Completed: echo-blog-post"
    assert echo.last_seen == NOW - timedelta(minutes=40)

    assert AgentId.KIRA not in acc

    assert [r.id for r in runs] == ["sa-aaaaaaaa", "sa-bbbbbbbb", "sa-cccccccc"]
    assert [r.status for r in runs] == ["running", "completed", "error"]
    assert [r.progress for r in runs] == [0.5, 1.0, 0.0]
    assert runs[0].parent_agent == "forge"
    assert runs[2].parent_agent == "kira"
    assert runs[2].name == "run-cccccccc"
    assert runs[2].task == "Unlabelled helper"
    assert runs[0].duration_ms == 20 * 60 * 1000
    assert runs[1].duration_ms == 20 * 60 * 1000


def test_running_run_always_overwrites_and_keeps_counters():
    acc = {AgentId.FORGE: blank_record(AgentId.FORGE, last_seen=NOW + timedelta(hours=1),
                                       tokens_used=70, api_calls=3)}
    merge_run_registry(acc, {"runs": {"r1": {"label": "forge-x",
                                             "createdAt": ms(NOW - timedelta(minutes=1))}}}, NOW)
    assert acc[AgentId.FORGE].status == "active"
    assert acc[AgentId.FORGE].tokens_used == 70
    assert acc[AgentId.FORGE].api_calls == 3


def test_finished_run_only_overwrites_when_newer():
    existing = blank_record(AgentId.ATLAS, status="active", current_task="standup",
                            last_seen=NOW - timedelta(minutes=1))
    acc = {AgentId.ATLAS: existing}
    merge_run_registry(acc, {"runs": {"r1": {
        "label": "atlas-report", "outcome": {"status": "ok"},
        "createdAt": ms(NOW - timedelta(hours=2)), "endedAt": ms(NOW - timedelta(hours=1)),
    }}}, NOW)
    assert acc[AgentId.ATLAS].current_task == "standup"


def test_unknown_label_lists_run_under_lead_without_record():
    acc = {}
    runs = merge_run_registry(acc, {"runs": {"r1": {"label": "researcher-x"}}}, NOW)
    assert acc == {}
    assert runs[0].parent_agent == "kira"


def test_run_pass_tolerates_missing_registry():
    assert merge_run_registry({}, None, NOW) == []
    assert merge_run_registry({}, {"runs": []}, NOW) == []


# ── Pass 3 ────────────────────────────────────────────────────────────────────

def test_dir_counters_accumulate_while_status_needs_newer_timestamp():
    acc = {}
    first = summary(NOW - timedelta(minutes=10), task="first task", tokens_in=10, tokens_out=5, calls=1)
    merge_dir_activity(acc, AgentId.HUNTER, "hunter", first, NOW)
    merge_dir_activity(acc, AgentId.HUNTER, "hunter",
                       summary(NOW - timedelta(minutes=10), task="same time", tokens_in=10, tokens_out=5, calls=1),
                       NOW)

    rec = acc[AgentId.HUNTER]
    assert rec.tokens_used == 30
    assert rec.api_calls == 2
    assert rec.current_task == "first task"
    assert rec.status == "idle"

    merge_dir_activity(acc, AgentId.HUNTER, "hunter",
                       summary(NOW - timedelta(minutes=1), task="newer task", tokens_out=1), NOW)
    assert rec.current_task == "newer task"
    assert rec.status == "active"
    assert rec.tokens_used == 31


def test_dir_pass_keeps_existing_session_reference():
    acc = {AgentId.FORGE: blank_record(AgentId.FORGE, session_id="agent:main:subagent:1",
                                       last_seen=NOW - timedelta(hours=1))}
    merge_dir_activity(acc, AgentId.FORGE, "cto-forge", summary(NOW, task="new"), NOW)
    assert acc[AgentId.FORGE].session_id == "agent:main:subagent:1"

    fresh = {}
    merge_dir_activity(fresh, AgentId.SENTINEL, "sentinel", summary(None), NOW)
    assert fresh[AgentId.SENTINEL].session_id == "agent:sentinel"
    assert fresh[AgentId.SENTINEL].current_task == "Standby"
    assert fresh[AgentId.SENTINEL].status == "offline"


def test_dir_pass_reads_most_recent_transcript(tmp_path):
    base = tmp_path / "agents"
    write_jsonl(base / "hunter" / "sessions" / "old.jsonl",
                [user(NOW - timedelta(hours=5), "An old request to ignore")], mtime=1_000)
    write_jsonl(base / "hunter" / "sessions" / "new.jsonl",
                [user(NOW - timedelta(minutes=2), "Find three new leads today")], mtime=2_000)
    acc = {}
    merge_agent_dirs(acc, base, NOW)
    assert acc[AgentId.HUNTER].current_task == "Find three new leads today"
    assert set(acc) == {AgentId.HUNTER}


# ── Assembly ──────────────────────────────────────────────────────────────────

def test_assemble_fills_gaps_in_display_order():
    acc = {AgentId.ECHO: blank_record(AgentId.ECHO, status="active")}
    agents = assemble_agents(acc)
    assert [a.id for a in agents] == ["kira", "hunter", "forge", "echo", "atlas", "sentinel"]
    assert agents[3].status == "active"
    assert all(a.status == "offline" for i, a in enumerate(agents) if i != 3)


def test_fetch_sessions_end_to_end(fleet_root):
    snap = fetch_sessions(fleet_root, NOW)
    by_id = {a.id: a for a in snap.agents}

    assert by_id["kira"].status == "active"
    assert by_id["hunter"].status == "idle"
    assert by_id["hunter"].tokens_used == 50
    assert by_id["hunter"].session_id == "agent:hunter"
    # run says running; the older transcript only contributes counters
    assert by_id["forge"].status == "active"
    assert by_id["forge"].current_task == "forge-refactor-auth"
    assert by_id["forge"].tokens_used == 10
    assert by_id["echo"].status == "idle"
    assert by_id["atlas"].status == "offline"

    assert len(snap.subagents) == 3
    kinds = [e.type for e in snap.events]
    assert kinds.count("agent:status") == 2
    assert kinds.count("subagent:spawn") == 1


def test_fetch_sessions_caps_subagents(root):
    import json
    (root / "subagents").mkdir()
    (root / "subagents" / "runs.json").write_text(json.dumps(
        {"runs": {f"run{i:04d}": {"label": f"echo-{i}"} for i in range(30)}}))
    snap = fetch_sessions(root, NOW)
    assert len(snap.subagents) == 20
    assert snap.subagents[0].id == "sa-run0000"
    assert len(snap.events) == 10


def test_fetch_sessions_without_root_is_empty():
    snap = fetch_sessions(None, NOW)
    assert (snap.agents, snap.subagents, snap.events) == ([], [], [])
