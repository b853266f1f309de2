"""Dockerfile and docker-compose rendering."""

from railsdeploy.pacts.types import Artifact, RenderContext, RenderResult
from railsdeploy.core.config import database_url
from railsdeploy.core.constants import POSTGRES_DATA_DIR

# Compose service names; DATABASE_URL in the web service points at DB_SERVICE
DB_SERVICE = "db"
WEB_SERVICE = "web"
DB_VOLUME = "postgres_data"


def render_dockerfile(config: dict) -> str:
    """Return the Dockerfile text for the application image."""
    app = config["app"]
    lines = [
        f"# Use official Ruby image with version {app['ruby_version']}",
        f"FROM ruby:{app['ruby_version']}",
        "",
        "# Install dependencies",
        "RUN apt-get update -qq && apt-get install -y nodejs postgresql-client",
        "",
        "# Set working directory",
        "WORKDIR /app",
        "",
        "# Copy Gemfile and install gems",
        "COPY Gemfile Gemfile.lock ./",
        "RUN bundle install",
        "",
        "# Copy the rest of the application",
        "COPY . .",
        "",
        "# Precompile assets",
        "RUN bundle exec rake assets:precompile",
        "",
        f"EXPOSE {app['port']}",
        "",
        "# Start the Rails server",
        'CMD ["rails", "server", "-b", "0.0.0.0"]',
    ]
    return "\n".join(lines) + "\n"


def render_compose(config: dict) -> dict:
    """Return the docker-compose document for local use."""
    app = config["app"]
    db = config["database"]
    password = db["local_password"]
    return {
        "version": "3.8",
        "services": {
            DB_SERVICE: {
                "image": db["image"],
                "environment": {
                    "POSTGRES_USER": db["user"],
                    "POSTGRES_PASSWORD": password,
                    "POSTGRES_DB": db["name"],
                },
                "volumes": [f"{DB_VOLUME}:{POSTGRES_DATA_DIR}"],
                "ports": [f"{db['port']}:5432"],
            },
            WEB_SERVICE: {
                "build": ".",
                "environment": {
                    "RAILS_ENV": app["rails_env"],
                    # inside the compose network the db always listens on 5432
                    "DATABASE_URL": database_url(
                        {**config, "database": {**db, "port": 5432}}, DB_SERVICE, password),
                },
                "ports": [f"{app['port']}:{app['port']}"],
                "depends_on": [DB_SERVICE],
            },
        },
        "volumes": {DB_VOLUME: None},
    }


class DockerRenderer:
    """Render the Dockerfile and docker-compose.yml."""
    name = "docker"

    def render(self, ctx: RenderContext) -> RenderResult:
        return RenderResult(artifacts=[
            Artifact(path="Dockerfile", text=render_dockerfile(ctx.config)),
            Artifact(path="docker-compose.yml", documents=[render_compose(ctx.config)]),
        ])
