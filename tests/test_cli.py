import json
from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from facerig.cli.commands import app
from facerig.vtuber.errors import CameraUnavailable
from facerig.vtuber.session import SessionResult
from facerig.vtuber.status import StatusBoard, StatusState

runner = CliRunner()


def keep_buffer(level, buffer):
    return buffer


def test_config_init_and_show(tmp_path):
    path = tmp_path / "config.json"

    result = runner.invoke(app, ["config", "init", "--config", str(path)])
    assert result.exit_code == 0
    assert "Created config" in result.stdout
    assert path.exists()

    result = runner.invoke(app, ["config", "show", "--config", str(path), "--json"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["pose"]["fixedScale"] == 4.0
    assert data["retarget"]["gains"]["eyeBlinkLeft"] == 1.2


def test_config_init_refuses_overwrite(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{}")

    result = runner.invoke(app, ["config", "init", "--config", str(path)])

    assert result.exit_code == 1
    assert path.read_text() == "{}"


def test_run_prints_session_summary(tmp_path):
    status = StatusBoard()
    status.set_status("Ready - Face the camera", StatusState.SUCCESS)
    session_result = SessionResult(frames=12, frames_applied=9, errors=1, status=status)
    log_path = tmp_path / "session.log"

    with patch("facerig.cli.commands.configure_logging", side_effect=keep_buffer), \
         patch("facerig.cli.commands.run_session", new=AsyncMock(return_value=session_result)) as mock_run:
        result = runner.invoke(
            app,
            [
                "run",
                "--config", str(tmp_path / "absent.json"),
                "--camera", "1",
                "--model", "models/face.task",
                "--max-frames", "12",
                "--dump-logs", str(log_path),
            ],
        )

    assert result.exit_code == 0
    assert "Ready - Face the camera" in result.stdout
    config = mock_run.call_args.args[0]
    assert config.camera.index == 1
    assert config.tracker.model_path == "models/face.task"
    assert mock_run.call_args.kwargs["max_frames"] == 12
    assert log_path.exists()


def test_run_reports_startup_failure(tmp_path):
    failing = AsyncMock(side_effect=CameraUnavailable("Camera 0 could not be opened"))

    with patch("facerig.cli.commands.configure_logging", side_effect=keep_buffer), \
         patch("facerig.cli.commands.run_session", new=failing):
        result = runner.invoke(app, ["run", "--config", str(tmp_path / "absent.json")])

    assert result.exit_code == 1
    assert "Camera 0 could not be opened" in result.stdout


def test_run_with_empty_rig_path_exits_cleanly(tmp_path):
    with patch("facerig.cli.commands.configure_logging", side_effect=keep_buffer):
        result = runner.invoke(app, ["run", "--config", str(tmp_path / "absent.json"), "--rig", ""])

    assert result.exit_code == 1
    assert "rig model_path is required" in result.stdout
    assert not isinstance(result.exception, ValueError)
