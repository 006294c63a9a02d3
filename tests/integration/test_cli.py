import os
import pytest
from click.testing import CliRunner
from redpack.CLI.main import cli

INPUTS = {
    "sentinel.conf": "port 26379\n",
    "sentinel-entrypoint.sh": "#!/bin/sh\nexec redis-server /redis/sentinel.conf --sentinel\n",
    "cluster.conf": "port 6379\ncluster-enabled yes\n",
    "cluster-entrypoint.sh": "#!/bin/sh\nexec redis-server /redis/cluster.conf\n",
}

def write_inputs(names=INPUTS):
    for name in names:
        with open(name, 'w') as f:
            f.write(INPUTS[name])

def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['--help'])
    assert result.exit_code == 0
    assert 'sentinel and cluster images' in result.output

def test_cli_list():
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ['list'])
    assert result.exit_code == 0
    assert 'sentinel   26379' in result.output
    assert 'cluster    6379' in result.output

def test_cli_render():
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ['render', 'sentinel'])
    assert result.exit_code == 0
    assert result.output.startswith('FROM redis:alpine\n')
    assert 'EXPOSE 26379' in result.output

def test_cli_render_to_directory():
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ['render', 'cluster', '-o', 'out'])
        assert result.exit_code == 0
        assert os.path.exists(os.path.join('out', 'cluster', 'Dockerfile'))

def test_cli_base_image_override():
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ['--base-image', 'redis:7.2-alpine', 'render', 'cluster'])
        assert result.exit_code == 0
        assert result.output.startswith('FROM redis:7.2-alpine\n')

        result = runner.invoke(cli, ['--base-image', 'redis:7.2-bookworm', 'render', 'cluster'])
        assert result.exit_code == 1
        assert 'alpine' in result.output

def test_cli_uses_project_file():
    runner = CliRunner()
    with runner.isolated_filesystem():
        with open('redpack.yml', 'w') as f:
            f.write("images:\n  sentinel:\n    tag: acme/sentinel:${REDPACK_CLI_TEST_TAG:-dev}\n")
        result = runner.invoke(cli, ['list'])
    assert result.exit_code == 0
    assert 'acme/sentinel:dev' in result.output

def test_cli_bad_project_file():
    runner = CliRunner()
    with runner.isolated_filesystem():
        with open('custom.yml', 'w') as f:
            f.write("colour: red\n")
        result = runner.invoke(cli, ['-c', 'custom.yml', 'list'])
    assert result.exit_code == 1
    assert 'Unknown configuration keys: colour' in result.output

def test_cli_build_all_dry_run():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_inputs()
        result = runner.invoke(cli, ['build', 'all', '--dry-run'])
    assert result.exit_code == 0
    assert 'sentinel: redpack/redis-sentinel:latest sha256:' in result.output
    assert 'cluster: redpack/redis-cluster:latest sha256:' in result.output

def test_cli_build_missing_inputs():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_inputs(['sentinel.conf', 'sentinel-entrypoint.sh'])
        result = runner.invoke(cli, ['build', 'all', '--dry-run'])
    # sentinel still builds on its own
    assert result.exit_code == 1
    assert 'sentinel: redpack/redis-sentinel:latest' in result.output
    assert 'Build failed for: cluster' in result.output

def test_cli_build_tag_with_all():
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ['build', 'all', '--tag', 'x:y'])
    assert result.exit_code == 2

def test_cli_source_dir():
    runner = CliRunner()
    with runner.isolated_filesystem():
        os.mkdir('inputs')
        os.chdir('inputs')
        write_inputs()
        os.chdir('..')
        result = runner.invoke(cli, ['--source-dir', 'inputs', 'build', 'sentinel', '--dry-run'])
    assert result.exit_code == 0

def test_cli_context_is_reproducible():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_inputs()
        first = runner.invoke(cli, ['context', 'cluster', '-o', 'one.tar'])
        second = runner.invoke(cli, ['context', 'cluster', '-o', 'two'])
        assert first.exit_code == 0
        assert second.exit_code == 0
        assert first.output.strip().splitlines()[-1] == second.output.strip().splitlines()[-1]
        with open('one.tar', 'rb') as f:
            assert f.read()
        assert sorted(os.listdir('two')) == ['Dockerfile', 'cluster-entrypoint.sh', 'cluster.conf']

def test_cli_context_missing_inputs():
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ['context', 'sentinel', '-o', 'ctx'])
    assert result.exit_code == 1
    assert 'missing input file' in result.output

def test_cli_context_unwritable_output():
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_inputs()
        with open('blocker', 'w') as f:
            f.write('not a directory')
        result = runner.invoke(cli, ['context', 'cluster', '-o', os.path.join('blocker', 'ctx')])
    assert result.exit_code == 1
    assert 'Cannot write build context' in result.output
    assert not isinstance(result.exception, OSError)

@pytest.mark.parametrize('entrypoint,exit_code', [
    ('ENTRYPOINT ["sentinel-entrypoint.sh"]', 0),
    ('ENTRYPOINT sentinel-entrypoint.sh', 1),
])
def test_cli_lint(entrypoint, exit_code):
    dockerfile = (
        "FROM redis:alpine\n"
        "RUN mkdir -p /redis\n"
        "WORKDIR /redis\n"
        "COPY sentinel.conf .\n"
        "COPY sentinel-entrypoint.sh /usr/local/bin/\n"
        "RUN chown redis:redis /redis/*\n"
        "EXPOSE 26379\n"
        f"{entrypoint}\n"
    )
    runner = CliRunner()
    with runner.isolated_filesystem():
        with open('Dockerfile', 'w') as f:
            f.write(dockerfile)
        result = runner.invoke(cli, ['lint', 'Dockerfile', '--topology', 'sentinel'])
    assert result.exit_code == exit_code
    assert 'script-mode' in result.output

def test_cli_lint_rendered_dockerfile():
    runner = CliRunner()
    with runner.isolated_filesystem():
        runner.invoke(cli, ['render', 'cluster', '-o', 'out'])
        result = runner.invoke(cli, ['lint', os.path.join('out', 'cluster', 'Dockerfile'), '-t', 'cluster'])
    assert result.exit_code == 0
    assert 'base-unpinned' in result.output

class FakeRunner:
    def __init__(self, verbose=False):
        self.verbose = verbose

    def run(self, command, input_bytes=None, check=True, timeout=None):
        import json
        import subprocess
        text = " ".join(command)
        if text.startswith("docker image inspect"):
            out = json.dumps({"ExposedPorts": {"6379/tcp": {}}, "WorkingDir": "/redis",
                              "Entrypoint": ["/redis/cluster-entrypoint.sh"]})
        elif "stat" in command:
            out = "redis:redis 644 /redis/cluster.conf\nroot:root 644 /redis/cluster-entrypoint.sh\n"
        elif "{{.State.Status}}" in text:
            out = "running"
        elif "{{json .Path}}" in text:
            out = '"/redis/cluster-entrypoint.sh" []'
        else:
            out = "abc123"
        return subprocess.CompletedProcess(command, 0, out, "")

def test_cli_verify_reports_failures(monkeypatch):
    import redpack.CLI.main as main_module
    monkeypatch.setattr(main_module, "CommandRunner", FakeRunner)
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ['verify', 'cluster'])
    assert result.exit_code == 1
    assert 'script-owner' in result.output
    assert 'script-executable' in result.output
    assert 'config-owner: ok' in result.output
