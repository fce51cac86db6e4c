from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml

from deploy_to_cf.core.exceptions import ManifestError, ManifestNotFoundError, ValidationError
from deploy_to_cf.core.models import SourceRef
from deploy_to_cf.deploy.manifest import AppManifest, bind_parameters, load_descriptor, parse_descriptor


MANIFEST = b"""\
applications:
- name: hello
deployment:
  env:
    SECRET_KEY:
      description: Session signing key
      required: true
    GREETING:
      description: Text to show
      value: hi
    DEBUG:
  services:
  - service: postgres
    plan: small
    label: hello-db
    tags: [db, sql, db]
    config:
      storage: 10
  - service: redis
    plan: tiny
    label: hello-cache
"""


def test_parse_descriptor():
    descriptor = parse_descriptor(MANIFEST)

    assert set(descriptor.env) == {"SECRET_KEY", "GREETING", "DEBUG"}
    assert descriptor.env["SECRET_KEY"].required is True
    assert descriptor.env["GREETING"].value == "hi"
    assert descriptor.env["DEBUG"].required is False
    assert [s.label for s in descriptor.services] == ["hello-db", "hello-cache"]
    assert descriptor.services[0].tags == ["db", "sql"]
    assert descriptor.services[0].config == {"storage": 10}
    assert descriptor.services[1].config == {}


def test_parse_descriptor_without_deployment_section():
    descriptor = parse_descriptor(b"applications:\n- name: x\n")
    assert descriptor.env == {}
    assert descriptor.services == []


def test_parse_descriptor_rejects_duplicate_labels():
    raw = b"""\
deployment:
  services:
  - {service: a, plan: p, label: same}
  - {service: b, plan: p, label: same}
"""
    with pytest.raises(ManifestError):
        parse_descriptor(raw)


@pytest.mark.parametrize("raw", [b"deployment: [unclosed", b"- just\n- a list\n", b"deployment: [1, 2]\n"])
def test_parse_descriptor_rejects_malformed(raw):
    with pytest.raises(ManifestError):
        parse_descriptor(raw)


def test_load_descriptor_uses_ref():
    client = MagicMock()
    client.get_file.return_value = MANIFEST
    source = SourceRef(owner="acme", repo="hello", ref="v1.2")

    descriptor = load_descriptor(client, source)

    client.get_file.assert_called_once_with("acme", "hello", "manifest.yml", "v1.2")
    assert len(descriptor.services) == 2


def test_load_descriptor_missing_file():
    client = MagicMock()
    client.get_file.side_effect = ManifestNotFoundError("manifest.yml not found")
    with pytest.raises(ManifestError):
        load_descriptor(client, SourceRef(owner="a", repo="b", ref="c"))


def test_bind_parameters_copies_values():
    descriptor = parse_descriptor(MANIFEST)

    bound = bind_parameters(descriptor, {"SECRET_KEY": "  s3cr3t ", "UNDECLARED": "x"})

    assert bound.env["SECRET_KEY"].value == "s3cr3t"
    assert bound.env["GREETING"].value == ""
    assert "UNDECLARED" not in bound.env
    # the loaded descriptor is untouched
    assert descriptor.env["SECRET_KEY"].value == ""
    assert descriptor.env["GREETING"].value == "hi"


def test_bind_parameters_lists_all_missing():
    raw = b"""\
deployment:
  env:
    B: {required: true}
    A: {required: true}
    C: {required: false}
"""
    with pytest.raises(ValidationError) as exc_info:
        bind_parameters(parse_descriptor(raw), {"A": "   "})
    assert exc_info.value.missing == ["A", "B"]


def write_manifest(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


def test_mutator_sets_supplied_value_and_preserves_rest(tmp_path: Path):
    original = {
        "applications": [{
            "name": "hello",
            "memory": "256M",
            "env": {"A": "", "B": "default-b"},
            "services": ["hello-db"],
        }],
        "buildpack": "python_buildpack",
    }
    path = write_manifest(tmp_path / "manifest.yml", original)

    manifest = AppManifest.load(path)
    manifest.set_env("A", "x")
    manifest.save()

    saved = yaml.safe_load(path.read_text())
    app = saved["applications"][0]
    assert app["env"] == {"A": "x", "B": "default-b"}
    assert set(saved) == set(original)
    assert {k: v for k, v in app.items() if k != "env"} == {
        "name": "hello",
        "memory": "256M",
        "services": ["hello-db"],
    }
    assert saved["buildpack"] == "python_buildpack"


def test_mutator_top_level_env(tmp_path: Path):
    path = write_manifest(tmp_path / "manifest.yml", {"name": "flat", "instances": 2})

    manifest = AppManifest.load(path)
    manifest.apply({"TOKEN": "abc"})
    manifest.save()

    assert yaml.safe_load(path.read_text()) == {"name": "flat", "instances": 2, "env": {"TOKEN": "abc"}}
    assert manifest.app_name is None


def test_mutator_every_application(tmp_path: Path):
    path = write_manifest(tmp_path / "manifest.yml", {"applications": [{"name": "web"}, {"name": "worker"}]})

    manifest = AppManifest.load(path)
    manifest.set_env("K", "v")

    assert manifest.app_name == "web"
    assert [app["env"] for app in manifest.to_dict()["applications"]] == [{"K": "v"}, {"K": "v"}]


def test_mutator_missing_file(tmp_path: Path):
    with pytest.raises(ManifestError):
        AppManifest.load(tmp_path / "manifest.yml")


def test_mutator_invalid_yaml(tmp_path: Path):
    path = tmp_path / "manifest.yml"
    path.write_text("applications: [\n")
    with pytest.raises(ManifestError):
        AppManifest.load(path)
