"""
Command-line construction for the docker buildx, docker login and helm steps.

Values are interpolated as-is. Nothing is quoted or escaped, so a config value
containing shell metacharacters changes the rendered command; keeping such
values out of the configuration is the caller's responsibility.
"""

import shlex
from typing import Any, Dict, List, Optional, Union

from config import BuildConfig


def build_docker_command(config: BuildConfig) -> List[str]:
    """Render a ``docker buildx build`` invocation as an ordered token list"""
    command = ["docker", "buildx", "--builder", config.builder_name, "build"]
    command.append(f"--progress={config.progress}")
    command.append(f"--platform={config.platform}")

    for arg in config.build_args:
        command.extend(["--build-arg", arg])

    # Explicit tag always precedes latest
    command.extend(["-t", config.get_image_tag()])
    command.extend(["-t", config.get_image_tag("latest")])

    if config.enable_cache:
        cache_ref = config.cache_ref
        command.extend(["--cache-to", f"type=registry,ref={cache_ref},mode=max"])
        command.extend(["--cache-from", f"type=registry,ref={cache_ref}"])

    command.extend(["--push", "-f", config.path, "."])
    return command


def render_command(tokens: List[str]) -> str:
    return " ".join(tokens)


def _split_image_ref(ref: str) -> Dict[str, Optional[str]]:
    repository, _, tag = ref.rpartition(":")
    parts = repository.split("/")
    if len(parts) == 1:
        return {"host": None, "project": None, "name": parts[0], "tag": tag}
    return {
        "host": parts[0],
        "project": "/".join(parts[1:-1]) or None,
        "name": parts[-1],
        "tag": tag,
    }


def parse_docker_command(command: Union[str, List[str]]) -> Dict[str, Any]:
    """Recover the build settings from a rendered buildx command.

    Accepts either the token list or the joined command line.
    """
    tokens = shlex.split(command) if isinstance(command, str) else list(command)
    if tokens[:2] != ["docker", "buildx"]:
        raise ValueError(f"Not a docker buildx command: {render_command(tokens)}")

    parsed: Dict[str, Any] = {
        "builder": None,
        "build_args": [],
        "tags": [],
        "cache_to": None,
        "cache_from": None,
        "push": False,
        "path": None,
        "context": None,
    }

    def value_after(i: int) -> str:
        if i + 1 >= len(tokens):
            raise ValueError(f"Option {tokens[i]} has no value in: {render_command(tokens)}")
        return tokens[i + 1]

    i = 2
    while i < len(tokens):
        token = tokens[i]
        if token == "--builder":
            parsed["builder"] = value_after(i)
            i += 2
            continue
        if token == "build":
            pass
        elif token.startswith("--progress="):
            parsed["progress"] = token.split("=", 1)[1]
        elif token.startswith("--platform="):
            parsed["platform"] = token.split("=", 1)[1]
        elif token == "--build-arg":
            parsed["build_args"].append(value_after(i))
            i += 1
        elif token == "-t":
            parsed["tags"].append(value_after(i))
            i += 1
        elif token == "--cache-to":
            parsed["cache_to"] = value_after(i)
            i += 1
        elif token == "--cache-from":
            parsed["cache_from"] = value_after(i)
            i += 1
        elif token == "--push":
            parsed["push"] = True
        elif token == "-f":
            parsed["path"] = value_after(i)
            i += 1
        else:
            parsed["context"] = token
        i += 1

    if not parsed["tags"]:
        raise ValueError("buildx command has no -t option")
    parsed.update(_split_image_ref(parsed["tags"][0]))
    parsed["enable_cache"] = parsed["cache_to"] is not None and parsed["cache_from"] is not None
    return parsed


def build_login_command(host: str, username: str) -> str:
    """Registry login; the password is expected on stdin"""
    return f"docker login {host} -u {username} --password-stdin"


def build_helm_command(name: str, path: str, namespace: str, sets: List[str] = None) -> str:
    command = [f"helm upgrade -i {name}", path]
    command.append(f"--namespace {namespace}")
    command.append("--create-namespace")
    for arg in sets or []:
        command.append(f"--set {arg}")
    command.append("--wait")
    command.append("--timeout 1h0s")
    return " ".join(command)


def prune_commands() -> List[str]:
    """Best-effort cleanup run before the last-chance docker retry"""
    return [
        "docker system prune -f || true",
        "docker builder prune -f || true",
    ]
