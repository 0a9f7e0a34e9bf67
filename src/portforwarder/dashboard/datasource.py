"""IntelliJ data source export for database tunnels."""

import uuid
from collections.abc import Callable

from ..tunnel.models import DatabaseSpec

DATASOURCE_TEMPLATE = """\
#DataSourceSettings#
#LocalDataSource: {name}
#BEGIN#
<?xml version="1.0"?>
<data-source source="LOCAL" name="{name}" group="{group}" uuid="{uuid}">
  <database-info product="{d.product}" version="" jdbc-version="{d.jdbc_version}" \
driver-name="{d.driver_name}" driver-version="{d.driver_version}" dbms="{d.dbms}" \
exact-version="" exact-driver-version="{d.exact_driver_version}">
  <identifier-quote-string >{d.identifier_quote}</identifier-quote-string>
</database-info>
  <case-sensitivity plain-identifiers="lower" quoted-identifiers="exact"/>
  <driver-ref>{d.driver_ref}</driver-ref>
  <synchronize>true</synchronize>
  <jdbc-driver>{d.driver_class}</jdbc-driver>
  <jdbc-url>{jdbc_url}</jdbc-url>
  <secret-storage>master_key</secret-storage>
  <user-name>{username}</user-name>
  <schema-mapping>
    <introspection-scope>
      <node kind="database" qname="@">
        <node kind="schema" qname="@"/>
      </node>
    </introspection-scope>
  </schema-mapping>
  <working-dir>$ProjectFileDir$</working-dir>
</data-source>
#END#
"""


def jdbc_url(database: DatabaseSpec, host: str, port: int) -> str:
    return f"jdbc:{database.kind.driver.jdbc_prefix}://{host}:{port}/{database.name}"


def generate_datasource(
    environment: str,
    database: DatabaseSpec,
    proxy_host: str,
    local_port: int,
    uuid_factory: Callable[[], uuid.UUID] = uuid.uuid4,
) -> str:
    """Render a data source definition IntelliJ can paste from the clipboard.

    Args:
        environment: kubectl context, used in the name and as the group
        database: Database reachable through the tunnel
        proxy_host: Host the IDE should connect to
        local_port: Local end of the tunnel

    Returns:
        Data source text in IntelliJ's clipboard format
    """
    return DATASOURCE_TEMPLATE.format(
        name=f"{database.name}-{environment}",
        group=environment[:1].upper() + environment[1:],
        uuid=uuid_factory(),
        d=database.kind.driver,
        jdbc_url=jdbc_url(database, proxy_host, local_port),
        username=database.username or "",
    )
