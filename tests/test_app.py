"""
End-to-end tests: static pods started by the application lifespan and
reached through the kubelet API.
"""

import os
import sys
import time

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from conftest import COMMAND_MODULE, HELLO_MODULE
from wasilet.main import create_app
from wasilet.modules.config import ConfigModule

pytestmark = [pytest.mark.e2e, pytest.mark.wasm]

POD = """
metadata:
  name: {name}
spec:
  containers:
    - name: main
      image: {image}
"""


@pytest.fixture
def app(tmp_path):
    pods = tmp_path / "pods"
    pods.mkdir()
    (pods / "calc.wat").write_text(COMMAND_MODULE)
    (pods / "hello.wat").write_text(HELLO_MODULE)
    (pods / "calc.yaml").write_text(POD.format(name="calc", image="calc.wat"))
    (pods / "hello.yaml").write_text(POD.format(name="hello", image="hello.wat"))

    config = ConfigModule()
    config.set("log_dir", str(tmp_path))
    config.set("static_pod_dir", str(pods))
    return create_app(config)


def test_static_pods_are_started_and_stopped(app):
    with TestClient(app) as client:
        provider = app.state.provider
        assert provider.list_workloads() == [
            ("default", "calc", "main"),
            ("default", "hello", "main"),
        ]

    assert provider.list_workloads() == []


def test_exec_against_static_pod(app):
    with TestClient(app) as client:
        response = client.post("/exec/default/calc/main?command=add&command=1&command=2")
        assert response.status_code == 200
        assert response.text == "3"

        with client.websocket_connect("/exec/default/calc/main?command=pair") as websocket:
            assert websocket.receive_bytes() == b"\x011\n2"

        with client.websocket_connect("/exec/default/calc/main?command=missing") as websocket:
            data = websocket.receive_bytes()
        assert data == b"\x02No function found with name missing"

        response = client.post("/exec/default/hello/main?command=add")
        assert response.status_code == 500


def test_logs_of_static_pod(app):
    with TestClient(app) as client:
        deadline = time.monotonic() + 10
        body = b""
        while time.monotonic() < deadline:
            body = client.get("/containerLogs/default/hello/main").content
            if body == b"hello\noops\n":
                break
            time.sleep(0.05)

        assert body == b"hello\noops\n"
