#!/usr/bin/env python3

import argparse
import json
import sys
import os
import logging
from typing import Any, Dict

import yaml

from config import StepSettings
from parser import ConfigParser, parse_assignments
from env_manager import PipelineContext, safe_get_env_var
from exceptions import StepError
from build_docker_image import build_docker_image, describe
from config_validator import validate_build_config
from deploy_steps import login_docker_registry, helm_deploy
from pipeline_syntax import validate_pipeline_syntax
from utils import docker_available

# --set values for every other key stay plain strings
TYPED_CONFIG_KEYS = ('enableCache', 'buildArgs')


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def load_settings(settings_path: str = None) -> StepSettings:
    """Load step settings from file, then let the environment override them"""
    settings = StepSettings()

    if settings_path:
        with open(settings_path, 'r', encoding='utf-8') as f:
            settings_data = json.load(f)
        for key, value in settings_data.items():
            if not hasattr(settings, key):
                raise ValueError(f"Unknown setting '{key}' in {settings_path}")
            setattr(settings, key, value)

    env_mapping = {
        'BUILDX_STEPS_MAX_ATTEMPTS': ('max_attempts', int),
        'BUILDX_STEPS_BACKOFF': ('backoff_unit', float),
        'BUILDX_STEPS_PRUNE': ('prune_on_failure', _env_bool),
    }

    for env_var, (attr, convert) in env_mapping.items():
        if env_var in os.environ:
            setattr(settings, attr, convert(os.environ[env_var]))

    return settings


def _make_context(args) -> PipelineContext:
    settings = load_settings(args.settings)
    params = parse_assignments(getattr(args, 'param', None))
    return PipelineContext.from_environment(params=params, settings=settings)


def _load_step_config(args, section: str) -> Dict[str, Any]:
    if not os.path.exists(args.config):
        raise FileNotFoundError(f"Configuration file '{args.config}' not found")
    config = ConfigParser(section=section).parse_file(args.config)
    config.update(parse_assignments(args.set, typed_keys=TYPED_CONFIG_KEYS))
    return config


def _print_suggestions(error: StepError):
    if error.suggestions:
        print("💡 Suggestions:")
        for suggestion in error.suggestions:
            print(f"   - {suggestion}")


def cmd_build(args):
    """Build command handler"""
    print(f"🚀 Building Docker image")
    print(f"   Configuration: {args.config}")

    if not args.dry_run and not docker_available():
        print("❌ Docker daemon or buildx is not accessible.")
        print("   - Tried: 'docker info' and 'docker buildx version'")
        print("   - Hints: start Docker, install the buildx plugin, or add your user to the 'docker' group.")
        return 1

    context = _make_context(args)
    config = _load_step_config(args, 'build')
    result = build_docker_image(config, context, dry_run=args.dry_run)

    if args.dry_run:
        print(json.dumps(describe(result), indent=2))
        return 0

    print(f"\n🎉 Build completed successfully!")
    for image in result.images:
        print(f"   {image}")
    return 0


def cmd_validate(args):
    """Validate command handler"""
    context = _make_context(args)
    config = _load_step_config(args, 'build')
    report = validate_build_config(config, context.env)

    print("=== Validation Report ===")
    print(yaml.safe_dump(report.to_dict(), sort_keys=False, allow_unicode=True))
    return 0 if report.ok else 1


def cmd_syntax(args):
    """Pipeline syntax check handler"""
    context = _make_context(args)
    check = validate_pipeline_syntax(
        context,
        check_environment_variables=not args.skip_env,
        check_parameters=not args.skip_params,
        suggest_fixes=not args.no_guidance,
    )
    if check.guidance:
        print(check.guidance)
    return 0


def cmd_login(args):
    """Registry login handler"""
    context = _make_context(args)
    host = args.host or safe_get_env_var(context, 'REGISTRY_HOST', required=True)
    password = sys.stdin.read().strip() if args.password_stdin else safe_get_env_var(
        context, args.password_env, required=True)
    login_docker_registry(host, args.username, password, context)
    return 0


def cmd_helm(args):
    """Helm deploy handler"""
    context = _make_context(args)
    config = _load_step_config(args, 'helm')
    for key in ('name', 'namespace', 'path'):
        if not config.get(key):
            print(f"❌ Error: helm config is missing '{key}'")
            return 1
    helm_deploy(config['name'], config['path'], config['namespace'], context, sets=config.get('set', []))
    return 0


def cmd_init(args):
    """Initialize command handler - create example config"""
    example_config = {
        "build": {
            "host": "registry.example.com:5000",
            "project": "my-project",
            "name": "my-app",
            "platform": "linux/amd64,linux/arm64",
            "path": "./Dockerfile",
            "enableCache": True,
            "buildArgs": ["VERSION=1.0.0"],
            "progress": "plain",
        },
        "helm": {
            "name": "my-app",
            "path": "./chart",
            "namespace": "my-namespace",
            "set": ["image.tag=latest"],
        },
    }

    config_file = args.output or "buildx-steps.yaml"

    try:
        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(example_config, f, sort_keys=False)
        print(f"Example configuration created: {config_file}")
        return 0
    except OSError as e:
        print(f"Error creating config file: {e}")
        return 1


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="buildx-steps",
        description="CI pipeline steps for docker buildx builds, registry login and Helm deploys",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s build -c buildx-steps.yaml
  %(prog)s build -c buildx-steps.yaml --set tag=1.2.3 --dry-run
  %(prog)s validate -c buildx-steps.yaml
  %(prog)s syntax --param PLATFORM=linux/amd64
  %(prog)s login -u ci --password-stdin < token.txt
  %(prog)s helm -c buildx-steps.yaml
  %(prog)s init --output buildx-steps.yaml
        """
    )

    parser.add_argument(
        '--settings',
        help='Path to a JSON settings file (retries, backoff, prune fallback)'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    def add_config_options(sub, required=True):
        sub.add_argument(
            '-c', '--config',
            required=required,
            help='Path to the step configuration file (JSON/YAML)'
        )
        sub.add_argument(
            '--set',
            action='append',
            metavar='KEY=VALUE',
            help='Override a configuration key (repeatable)'
        )
        sub.add_argument(
            '--param',
            action='append',
            metavar='NAME=VALUE',
            help='Pipeline parameter (repeatable)'
        )

    # Build command
    build_parser = subparsers.add_parser('build', help='Build and push a Docker image with buildx')
    add_config_options(build_parser)
    build_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Validate and print the buildx command without running it'
    )
    build_parser.set_defaults(func=cmd_build)

    # Validate command
    validate_parser = subparsers.add_parser('validate', help='Validate a build configuration')
    add_config_options(validate_parser)
    validate_parser.set_defaults(func=cmd_validate)

    # Syntax command
    syntax_parser = subparsers.add_parser('syntax', help='Check pipeline environment and parameters')
    syntax_parser.add_argument('--param', action='append', metavar='NAME=VALUE', help='Pipeline parameter (repeatable)')
    syntax_parser.add_argument('--skip-env', action='store_true', help='Do not check environment variables')
    syntax_parser.add_argument('--skip-params', action='store_true', help='Do not list pipeline parameters')
    syntax_parser.add_argument('--no-guidance', action='store_true', help='Do not print syntax guidance')
    syntax_parser.set_defaults(func=cmd_syntax)

    # Login command
    login_parser = subparsers.add_parser('login', help='Log in to a Docker registry')
    login_parser.add_argument('--host', help='Registry host (default: REGISTRY_HOST)')
    login_parser.add_argument('-u', '--username', required=True, help='Registry user')
    login_parser.add_argument('--password-stdin', action='store_true', help='Read the password from stdin')
    login_parser.add_argument(
        '--password-env',
        default='REGISTRY_PASSWORD',
        help='Environment variable holding the password (default: REGISTRY_PASSWORD)'
    )
    login_parser.set_defaults(func=cmd_login)

    # Helm command
    helm_parser = subparsers.add_parser('helm', help='Install or upgrade a Helm release')
    add_config_options(helm_parser)
    helm_parser.set_defaults(func=cmd_helm)

    # Init command
    init_parser = subparsers.add_parser('init', help='Create example configuration')
    init_parser.add_argument(
        '--output', '-o',
        help='Output file path (default: buildx-steps.yaml)'
    )
    init_parser.set_defaults(func=cmd_init)

    return parser


def main(argv=None):
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    # Configure logging to show INFO level messages
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(message)s')

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1
    except StepError as e:
        print(f"❌ {type(e).__name__}: {e.message}")
        _print_suggestions(e)
        return 1
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
