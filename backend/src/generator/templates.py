"""Source templates for scaffolded Spring Boot services."""

from lifecycle.models import ProjectRecord, app_endpoint_name, stateful_endpoint_name

POSTGRES_PORT = 5432


def package_name(identifier: str) -> str:
    return f"com.example.{identifier.replace('-', '')}"


def application_class_name(identifier: str) -> str:
    return "".join(part.capitalize() for part in identifier.split("-")) + "Application"


def controller_class_name(identifier: str) -> str:
    return application_class_name(identifier).replace("Application", "Controller")


def database_name(identifier: str) -> str:
    return identifier.replace("-", "_")


def render_pom(record: ProjectRecord) -> str:
    persistence_deps = ""
    if record.uses_stateful_store:
        persistence_deps = """
        <dependency>
            <groupId>org.springframework.boot</groupId>
            <artifactId>spring-boot-starter-data-jpa</artifactId>
        </dependency>
        <dependency>
            <groupId>org.postgresql</groupId>
            <artifactId>postgresql</artifactId>
            <scope>runtime</scope>
        </dependency>"""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0"
         xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
         xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 https://maven.apache.org/xsd/maven-4.0.0.xsd">
    <modelVersion>4.0.0</modelVersion>

    <parent>
        <groupId>org.springframework.boot</groupId>
        <artifactId>spring-boot-starter-parent</artifactId>
        <version>3.2.0</version>
        <relativePath/>
    </parent>

    <groupId>{package_name(record.identifier).rsplit('.', 1)[0]}</groupId>
    <artifactId>{record.identifier}</artifactId>
    <version>0.0.1-SNAPSHOT</version>
    <name>{record.identifier}</name>
    <description>{record.description}</description>

    <properties>
        <java.version>{record.java_version}</java.version>
    </properties>

    <dependencies>
        <dependency>
            <groupId>org.springframework.boot</groupId>
            <artifactId>spring-boot-starter-web</artifactId>
        </dependency>
        <dependency>
            <groupId>org.springframework.boot</groupId>
            <artifactId>spring-boot-starter-actuator</artifactId>
        </dependency>{persistence_deps}
        <dependency>
            <groupId>org.springframework.boot</groupId>
            <artifactId>spring-boot-starter-test</artifactId>
            <scope>test</scope>
        </dependency>
    </dependencies>

    <build>
        <plugins>
            <plugin>
                <groupId>org.springframework.boot</groupId>
                <artifactId>spring-boot-maven-plugin</artifactId>
            </plugin>
        </plugins>
    </build>
</project>
"""


def render_application_properties(record: ProjectRecord) -> str:
    lines = [
        f"server.port={record.port}",
        f"spring.application.name={record.identifier}",
        "management.endpoints.web.exposure.include=health,info",
        "management.endpoint.health.probes.enabled=true",
    ]
    if record.uses_stateful_store:
        host = stateful_endpoint_name(record.identifier)
        lines += [
            "",
            "# Credentials are injected from the database Secret",
            f"spring.datasource.url=${{SPRING_DATASOURCE_URL:jdbc:postgresql://{host}:{POSTGRES_PORT}/"
            f"{database_name(record.identifier)}}}",
            "spring.datasource.username=${SPRING_DATASOURCE_USERNAME}",
            "spring.datasource.password=${SPRING_DATASOURCE_PASSWORD}",
            "spring.jpa.hibernate.ddl-auto=none",
            "spring.sql.init.mode=always",
        ]
    return "\n".join(lines) + "\n"


def render_schema_sql(record: ProjectRecord) -> str:
    return f"""-- Initial schema for {record.identifier}
CREATE TABLE IF NOT EXISTS items (
    id BIGSERIAL PRIMARY KEY,
    name VARCHAR(255) NOT NULL,
    created_at TIMESTAMP NOT NULL DEFAULT NOW()
);
"""


def render_application_class(record: ProjectRecord) -> str:
    cls = application_class_name(record.identifier)
    return f"""package {package_name(record.identifier)};

import org.springframework.boot.SpringApplication;
import org.springframework.boot.autoconfigure.SpringBootApplication;

@SpringBootApplication
public class {cls} {{

    public static void main(String[] args) {{
        SpringApplication.run({cls}.class, args);
    }}
}}
"""


def render_controller(record: ProjectRecord) -> str:
    cls = controller_class_name(record.identifier)
    return f"""package {package_name(record.identifier)};

import org.springframework.web.bind.annotation.GetMapping;
import org.springframework.web.bind.annotation.RestController;

import java.util.Map;

@RestController
public class {cls} {{

    @GetMapping("/")
    public Map<String, String> home() {{
        return Map.of("service", "{record.identifier}", "status", "running");
    }}

    @GetMapping("/hello")
    public Map<String, String> hello() {{
        return Map.of("message", "Hello from {record.identifier}!");
    }}
}}
"""


def render_dockerfile(record: ProjectRecord) -> str:
    return f"""FROM maven:3.9-eclipse-temurin-{record.java_version} AS build
WORKDIR /app
COPY pom.xml .
COPY src ./src
RUN mvn -q clean package -DskipTests

FROM eclipse-temurin:{record.java_version}-jre-alpine
WORKDIR /app
COPY --from=build /app/target/{record.identifier}-0.0.1-SNAPSHOT.jar app.jar
EXPOSE {record.port}
ENTRYPOINT ["java", "-jar", "app.jar"]
"""


def render_catalog_info(record: ProjectRecord) -> str:
    return f"""apiVersion: backstage.io/v1alpha1
kind: Component
metadata:
  name: {record.identifier}
  description: {record.description}
  annotations:
    backstage.io/kubernetes-id: {record.identifier}
    backstage.io/kubernetes-namespace: {record.namespace or 'default'}
spec:
  type: service
  lifecycle: {record.lifecycle}
  owner: {record.owner}
"""


def render_readme(record: ProjectRecord) -> str:
    service = app_endpoint_name(record.identifier)
    ns = f" -n {record.namespace}" if record.namespace else ""
    return f"""# {record.identifier}

{record.description}

## Requirements

- Java {record.java_version}
- Maven 3.9+
- Docker
- Kubernetes/minikube (optional)

## Run locally

```bash
mvn spring-boot:run
curl http://localhost:{record.port}/hello
```

## Deploy

```bash
docker build -t {record.identifier}:latest .
minikube image load {record.identifier}:latest
kubectl apply{ns} -f k8s/
kubectl port-forward{ns} svc/{service} {record.port}:{record.port}
```
"""


def render_gitignore(record: ProjectRecord) -> str:
    ignored = """# Build
target/
*.jar
*.class

# IDE
.idea/
*.iml
.vscode/

# OS
.DS_Store

# Environment
.env
.env.local
.env.*.local
"""
    if record.uses_stateful_store:
        # Credentials are applied from disk but never pushed
        ignored += "\n# Database credentials\nk8s/db-secret.yaml\n"
    return ignored
