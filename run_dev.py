#!/usr/bin/env python3
"""Development server runner for the Patronat de Festes service."""

import os
import sys
from pathlib import Path


def setup_environment():
    """Set up the development environment."""
    project_root = Path(__file__).parent
    sys.path.insert(0, str(project_root))

    from dotenv import load_dotenv
    env_file = project_root / '.env'
    if env_file.exists():
        load_dotenv(env_file)
        print(f"✓ Loaded environment from {env_file}")
    else:
        print(f"⚠️ No .env file found at {env_file}")

    os.environ.setdefault('FLASK_APP', 'patronat:create_app')
    os.environ.setdefault('FLASK_DEBUG', '1')
    # Local HTTP: session cookies must not require HTTPS
    os.environ.setdefault('SESSION_COOKIE_SECURE', 'false')


def run_development_server():
    """Run the Flask development server."""
    from patronat import create_app

    app = create_app()

    print("\n" + "=" * 60)
    print("🚀 Starting Patronat de Festes Development Server")
    print("=" * 60)
    print(f"Debug mode: {os.environ.get('FLASK_DEBUG', '0') == '1'}")
    print(f"Database: {app.config['SQLALCHEMY_DATABASE_URI']}")
    print(f"Mail enabled: {app.config['MAIL_ENABLED']}")
    print("\n📱 Access the API at:")
    print("   • http://localhost:5000/api")
    print("\n🛠️ To create an admin and a first season, run in another terminal:")
    print("   flask user create --email admin@example.com --password changeme123")
    print("   flask season create --year 2026 --total 60 --fractions 20 20 20 --activate")
    print("\n⏹️ Press Ctrl+C to stop the server")
    print("=" * 60)

    app.run(
        host='0.0.0.0',
        port=5000,
        debug=True,
        use_reloader=True
    )


def main():
    """Set up and run the development server."""
    print("Patronat de Festes - Development Setup")
    print("=" * 60)

    setup_environment()

    try:
        run_development_server()
    except KeyboardInterrupt:
        print("\n\n🛑 Development server stopped by user")


if __name__ == "__main__":
    main()
