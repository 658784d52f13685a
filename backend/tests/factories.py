"""Builders for Monit XML reports used across the tests."""

COLLECTED_SEC = 1706634789


def service_xml(
    name: str,
    type: int,
    body: str = "",
    status: int = 0,
    monitor: int = 1,
    monitor_mode: int = 0,
    collected_sec: int = COLLECTED_SEC,
) -> str:
    return (
        f'<service type="{type}">'
        f"<name>{name}</name>"
        f"<status>{status}</status>"
        f"<status_hint>0</status_hint>"
        f"<monitor>{monitor}</monitor>"
        f"<monitormode>{monitor_mode}</monitormode>"
        f"<onreboot>0</onreboot>"
        f"<collected_sec>{collected_sec}</collected_sec>"
        f"<collected_usec>123456</collected_usec>"
        f"{body}"
        f"</service>"
    )


def event_xml(service: str, id: int = 512, state: int = 1, message: str = "failed") -> str:
    return (
        "<event>"
        f"<collected_sec>{COLLECTED_SEC}</collected_sec>"
        "<collected_usec>42</collected_usec>"
        f"<service>{service}</service>"
        "<type>3</type>"
        f"<id>{id}</id>"
        f"<state>{state}</state>"
        "<action>1</action>"
        f"<message>{message}</message>"
        "</event>"
    )


def group_xml(name: str, members) -> str:
    services = "".join(f"<service>{member}</service>" for member in members)
    return f'<servicegroup name="{name}">{services}</servicegroup>'


def report_xml(
    monit_id: str = "abc123",
    incarnation: int = 1,
    hostname: str = "test-server-1",
    services=(),
    events=(),
    groups=(),
) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        "<monit>"
        "<server>"
        "<uptime>86400</uptime>"
        "<poll>120</poll>"
        "<startdelay>0</startdelay>"
        f"<localhostname>{hostname}</localhostname>"
        "<controlfile>/etc/monit/monitrc</controlfile>"
        "<httpd><address>0.0.0.0</address><port>2812</port><ssl>0</ssl></httpd>"
        f"<id>{monit_id}</id>"
        f"<incarnation>{incarnation}</incarnation>"
        "<version>5.33.0</version>"
        "</server>"
        "<platform>"
        "<name>Linux</name><release>5.15.0-91-generic</release>"
        "<version>#101-Ubuntu SMP</version><machine>x86_64</machine>"
        "<cpu>8</cpu><memory>16384000</memory><swap>4096000</swap>"
        "</platform>"
        f"{''.join(services)}"
        f"<servicegroups>{''.join(groups)}</servicegroups>"
        f"{''.join(events)}"
        "</monit>"
    )


SYSTEM_BODY = (
    "<system>"
    "<load><avg01>1.25</avg01><avg05>1.10</avg05><avg15>0.95</avg15></load>"
    "<memory><percent>45.8</percent></memory>"
    "</system>"
)

NGINX_BODY = (
    "<process>"
    "<pid>1234</pid><ppid>1</ppid><uptime>86400</uptime><children>4</children>"
    "<memory><percent>2.5</percent></memory>"
    "<cpu><percent>5.2</percent></cpu>"
    "</process>"
)


def scenario_report(**kwargs) -> str:
    """Host abc123 with a system service and an nginx process, no events."""
    return report_xml(
        services=[service_xml("system", 5, SYSTEM_BODY), service_xml("nginx", 3, NGINX_BODY)],
        **kwargs,
    )


# Report shipped by Monit 5.33 with full system, process and filesystem sections
SAMPLE_REPORT = """<?xml version="1.0" encoding="UTF-8"?>
<monit>
  <server>
    <uptime>86400</uptime>
    <poll>120</poll>
    <startdelay>0</startdelay>
    <localhostname>test-server-1</localhostname>
    <controlfile>/etc/monit/monitrc</controlfile>
    <httpd>
      <address>0.0.0.0</address>
      <port>2812</port>
      <ssl>0</ssl>
    </httpd>
    <id>abc123def456</id>
    <incarnation>1706543210</incarnation>
    <version>5.33.0</version>
  </server>
  <platform>
    <name>Linux</name>
    <release>5.15.0-91-generic</release>
    <version>#101-Ubuntu SMP</version>
    <machine>x86_64</machine>
    <cpu>8</cpu>
    <memory>16384000</memory>
    <swap>4096000</swap>
  </platform>
  <service type="5">
    <name>system</name>
    <status>0</status>
    <status_hint>0</status_hint>
    <monitor>1</monitor>
    <monitormode>0</monitormode>
    <onreboot>0</onreboot>
    <collected_sec>1706634789</collected_sec>
    <collected_usec>123456</collected_usec>
    <system>
      <load>
        <avg01>1.25</avg01>
        <avg05>1.10</avg05>
        <avg15>0.95</avg15>
      </load>
      <cpu>
        <user>25.5</user>
        <system>10.2</system>
        <wait>2.1</wait>
      </cpu>
      <memory>
        <percent>45.8</percent>
        <kilobyte>7500800</kilobyte>
      </memory>
      <swap>
        <percent>5.2</percent>
        <kilobyte>212992</kilobyte>
      </swap>
    </system>
  </service>
  <service type="3">
    <name>nginx</name>
    <status>0</status>
    <status_hint>0</status_hint>
    <monitor>1</monitor>
    <monitormode>0</monitormode>
    <onreboot>0</onreboot>
    <collected_sec>1706634789</collected_sec>
    <collected_usec>123456</collected_usec>
    <process>
      <pid>1234</pid>
      <ppid>1</ppid>
      <uptime>86400</uptime>
      <children>4</children>
      <memory>
        <percent>2.5</percent>
        <kilobyte>409600</kilobyte>
      </memory>
      <cpu>
        <percent>5.2</percent>
      </cpu>
    </process>
  </service>
  <service type="0">
    <name>rootfs</name>
    <status>0</status>
    <status_hint>0</status_hint>
    <monitor>1</monitor>
    <monitormode>0</monitormode>
    <onreboot>0</onreboot>
    <collected_sec>1706634789</collected_sec>
    <collected_usec>123456</collected_usec>
    <block>
      <percent>65.3</percent>
      <usage>67108864</usage>
      <total>102400000</total>
    </block>
  </service>
</monit>"""
