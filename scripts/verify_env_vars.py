import re
import sys
from pathlib import Path

from pydantic import ValidationError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from paybridge.config import Settings  # noqa: E402


def find_env_vars():
    """Find all environment variable aliases declared on Settings."""
    content = (ROOT / "paybridge" / "config.py").read_text(encoding="utf-8")
    return sorted(set(re.findall(r'alias="([A-Z0-9_]+)"', content)))


def required_env_vars():
    return sorted(
        field.alias
        for field in Settings.model_fields.values()
        if field.is_required() and field.alias
    )


def verify_environment() -> int:
    declared = find_env_vars()
    required = required_env_vars()

    print("=== ENV VAR VERIFICATION ===")
    print(f"Settings declares: {len(declared)} vars ({len(required)} required)")
    print("")
    try:
        settings = Settings()
    except ValidationError as exc:
        print(f"INVALID CONFIGURATION ({exc.error_count()}):")
        for error in exc.errors():
            name = ".".join(str(part) for part in error["loc"])
            print(f"  - {name}: {error['msg']}")
        print("")
        print("Please check your .env file and ensure all required variables are set.")
        return 1

    print("Environment configuration is valid")
    print(f"  APP_ENV={settings.app_env}")
    print(f"  FRONTEND_URL={settings.frontend_url}")
    optional_missing = [
        name
        for name, value in (
            ("REVENUECAT_PUBLIC_KEY", settings.revenuecat_public_key),
            ("STRIPE_PUBLISHABLE_KEY", settings.stripe_publishable_key),
        )
        if not value
    ]
    if optional_missing:
        print("Optional vars not set:")
        for name in optional_missing:
            print(f"  - {name}")
    return 0


if __name__ == "__main__":
    sys.exit(verify_environment())
