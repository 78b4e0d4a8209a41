from app.cli import main
from app.database import StorageGateway
from conftest import make_registry, sqlite_engine_factory


def test_init_db_creates_table_everywhere(gateway, capsys):
    assert main(["init-db"], gateway=gateway) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == [
        "[ok] us-west-1: database initialized",
        "[ok] sa-east-1: database initialized",
        "[ok] ap-southeast-2: database initialized",
    ]


def test_check_db_reports_table_layout(gateway, capsys):
    main(["init-db"], gateway=gateway)
    capsys.readouterr()

    assert main(["check-db"], gateway=gateway) == 0
    out = capsys.readouterr().out
    assert "Checking us-west-1..." in out
    assert "connection: ok" in out
    assert "table uploaded_files exists: True" in out
    assert "upload_duration_ms:" in out


def test_check_db_before_init_reports_missing_table(gateway, capsys):
    assert main(["check-db"], gateway=gateway) == 0
    assert "table uploaded_files exists: False" in capsys.readouterr().out


def test_commands_fail_when_a_region_is_unconfigured(tmp_path, capsys):
    registry = make_registry(hosts={"us-west-1": "db1:5432"})
    gateway = StorageGateway(registry, engine_factory=sqlite_engine_factory(tmp_path))
    assert main(["init-db"], gateway=gateway) == 1
    assert "[error] sa-east-1: No database host found for region: sa-east-1" in capsys.readouterr().out
    assert main(["check-db"], gateway=gateway) == 1
