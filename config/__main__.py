"""Command line interface for testing configuration loading"""
from . import settings_conf, pricing_settings

def main():
    """Display loaded configuration"""
    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings_conf.items():
        if key == 'admin_token_secret' and value:
            value = '********'
        print(f"{key}: {value}")

    print("\nPhase duration (seconds):")
    print("-" * 50)
    print(pricing_settings.default_phase_seconds)

if __name__ == "__main__":
    main()
