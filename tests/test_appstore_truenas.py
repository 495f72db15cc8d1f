import yaml

from dockyard.appstore.truenas import generate_truenas_values

COMPOSE = """
services:
  jellyfin:
    image: linuxserver/jellyfin:10.8.13
    ports:
      - "8096:8096/tcp"
    environment:
      PUID: 1000
      TZ:
    volumes:
      - /DATA/jellyfin:/config
      - media:/media
  sidecar:
    image: busybox
"""


def test_generate_truenas_values_from_first_service():
    values = yaml.safe_load(generate_truenas_values(COMPOSE))

    assert values["image"] == {
        "repository": "linuxserver/jellyfin",
        "tag": "10.8.13",
        "pullPolicy": "IfNotPresent",
    }
    assert values["service"]["main"]["ports"]["main"]["port"] == 8096
    assert values["service"]["main"]["ports"]["main"]["targetPort"] == 8096
    env = values["workload"]["main"]["podSpec"]["containers"]["main"]["env"]
    assert env == {"PUID": 1000, "TZ": ""}
    assert values["persistence"]["vol0"] == {
        "enabled": True,
        "mountPath": "/config",
        "type": "hostPath",
        "hostPath": "/DATA/jellyfin",
    }
    assert values["persistence"]["vol1"]["type"] == "ixVolume"
    assert values["persistence"]["vol1"]["datasetName"] == "media"


def test_generate_truenas_values_defaults_and_list_environment():
    values = yaml.safe_load(
        generate_truenas_values(
            "services:\n  web:\n    image: nginx\n    environment:\n      - A=1\n      - B\n"
        )
    )
    assert values["image"]["tag"] == "latest"
    assert values["service"]["main"]["ports"]["main"]["port"] == 10000
    assert values["workload"]["main"]["podSpec"]["containers"]["main"]["env"] == {"A": "1", "B": ""}


def test_generate_truenas_values_reports_problems_as_comments():
    assert generate_truenas_values("services: {}\n") == "# No services found"
    assert generate_truenas_values("services: [broken\n") == "# Error generating TrueNAS template"


def ports_of(compose):
    return yaml.safe_load(generate_truenas_values(compose))["service"]["main"]["ports"]["main"]


def test_generate_truenas_values_maps_first_port_of_a_range():
    main = ports_of('services:\n  web:\n    image: nginx\n    ports: ["8080-8090:80-90/udp"]\n')
    assert (main["port"], main["targetPort"]) == (8080, 80)

    main = ports_of('services:\n  web:\n    image: nginx\n    ports: ["127.0.0.1:8443:443"]\n')
    assert (main["port"], main["targetPort"]) == (8443, 443)


def test_generate_truenas_values_keeps_default_ports_when_unparseable():
    main = ports_of('services:\n  web:\n    image: nginx\n    ports: ["http:80"]\n')
    assert (main["port"], main["targetPort"]) == (10000, 80)


def test_generate_truenas_values_splits_registry_port_from_tag():
    values = yaml.safe_load(generate_truenas_values("services:\n  web:\n    image: registry:5000/team/img:1.2\n"))
    assert values["image"]["repository"] == "registry:5000/team/img"
    assert values["image"]["tag"] == "1.2"

    values = yaml.safe_load(generate_truenas_values("services:\n  web:\n    image: registry:5000/team/img\n"))
    assert values["image"]["repository"] == "registry:5000/team/img"
    assert values["image"]["tag"] == "latest"
