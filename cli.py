#!/usr/bin/env python3
"""
CLI principal para sincronizar variables de diseño entre el documento,
el baseline versionado y los componentes que las consumen.
"""
import asyncio
import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from config import Config
from src.ai import AIClient
from src.changeset import build_change_set, parse_proposal
from src.diff import diff_variables, has_drift
from src.graph import Neo4jLoader
from src.impact import (
    build_variable_name_map,
    format_value,
    render_markdown_summary,
    resolve_impact,
    total_impacted_nodes,
)
from src.model import derive_collections, dump_baseline, load_baseline, load_baseline_file
from src.protocol import (
    DocumentClient,
    FileDocumentChannel,
    HttpDocumentChannel,
    ProtocolError,
)
from src.scm import GitHubClient, TeamsNotifier
from src.usage import build_index, index_from_scan_response
from src.utils.logger import set_global_level
from src.utils.serialization import canonical_json
from src.visualization import GraphVisualizer

console = Console()

LEVEL_STYLES = {"high": "red", "medium": "yellow", "low": "green"}


def fail(message: str):
    """Muestra el error y termina con código 1."""
    console.print(f"[red]Error: {message}[/red]")
    raise SystemExit(1)


def print_warnings(warnings):
    for warning in warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")


def open_client(ctx) -> DocumentClient:
    """Cliente del documento según las opciones globales (--document / --bridge)."""
    document = ctx.obj.get("document")
    if document:
        return DocumentClient(FileDocumentChannel(Path(document)))
    return DocumentClient(HttpDocumentChannel(ctx.obj.get("bridge")))


def read_variables(path: str):
    """Lee un baseline y muestra las advertencias de registros descartados."""
    variables, warnings = load_baseline_file(Path(path))
    print_warnings(warnings)
    return variables


def read_index(path: str):
    """
    Lee un escaneo de uso guardado: lista de bindings, {"bindings": [...]}
    (archivo de documento) o la respuesta de ScanUsage.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        fail(f"{path}: JSON inválido ({e})")

    if isinstance(data, list):
        return build_index(data)
    if isinstance(data, dict) and isinstance(data.get("bindings"), list):
        return build_index(data["bindings"])
    if isinstance(data, dict):
        return index_from_scan_response(data)
    fail(f"{path}: formato de escaneo no reconocido")


def read_json(path: str):
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        fail(f"{path}: JSON inválido ({e})")


async def scan_with_progress(client: DocumentClient):
    """Escanea el uso del documento mostrando el progreso por chunks."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Escaneando uso de variables...", total=None)

        def on_progress(processed, total):
            progress.update(task, completed=processed, total=total)

        return await client.scan_usage(on_progress=on_progress)


def diff_table(diff, names) -> Table:
    table = Table(title="Diferencias de variables")
    table.add_column("Estado", style="cyan")
    table.add_column("Variable", style="magenta")
    table.add_column("Tipo", style="green")
    table.add_column("Modos", style="yellow")
    table.add_column("Antes → Después")

    for variable in diff.added:
        table.add_row(
            "[green]añadida[/green]",
            variable.qualified_name,
            variable.type.value,
            str(len(variable.values_by_mode)),
            f"→ {format_value(variable.first_value(), names)}",
        )
    for variable in diff.removed:
        table.add_row(
            "[red]eliminada[/red]",
            variable.qualified_name,
            variable.type.value,
            str(len(variable.values_by_mode)),
            f"{format_value(variable.first_value(), names)} →",
        )
    for change in diff.changed:
        modes = change.changed_modes()
        first = modes[0] if modes else None
        values = (
            f"{format_value(change.old.value_for(first), names)} → "
            f"{format_value(change.new.value_for(first), names)}"
            if first else "(metadatos)"
        )
        label = change.new.qualified_name
        if change.renamed:
            label = f"{change.old.name} → {label}"
        table.add_row(
            "[yellow]modificada[/yellow]",
            label,
            change.new.type.value,
            ", ".join(modes) or "-",
            values,
        )
    return table


def impact_table(impacts) -> Table:
    table = Table(title="Impacto por componente")
    table.add_column("Componente", style="cyan")
    table.add_column("Nodos", style="magenta", justify="right")
    table.add_column("Impacto")
    table.add_column("Variables afectadas", style="green")

    for impact in impacts:
        level = impact.level.value
        table.add_row(
            impact.component_name,
            str(impact.node_count),
            f"[{LEVEL_STYLES[level]}]{level}[/{LEVEL_STYLES[level]}]",
            ", ".join(change.variable_name for change in impact.changes),
        )
    return table


@click.group()
@click.option("--document", "-d", type=click.Path(), help="Documento local (JSON) servido por archivo")
@click.option("--bridge", "-b", help="URL del bridge HTTP del documento")
@click.option("--verbose", "-v", is_flag=True, help="Logging detallado")
@click.pass_context
def cli(ctx, document, bridge, verbose):
    """Diff, impacto y aplicación de variables de diseño."""
    ctx.ensure_object(dict)
    ctx.obj["document"] = document
    ctx.obj["bridge"] = bridge or Config.DOCUMENT_BRIDGE_URL
    if verbose:
        set_global_level(logging.INFO)


@cli.command()
@click.option("--output", "-o", type=click.Path(), help="Archivo baseline de salida (stdout si se omite)")
@click.pass_context
def extract(ctx, output):
    """Extrae las variables del documento y genera el baseline."""

    async def _extract():
        async with open_client(ctx) as client:
            return await client.extract_variables()

    try:
        result = asyncio.run(_extract())
    except ProtocolError as e:
        fail(str(e))

    print_warnings(result.warnings)
    content = dump_baseline(result.variables)

    if not output:
        click.echo(content, nl=False)
        return

    Path(output).write_text(content, encoding="utf-8")
    console.print(
        f"[green]✓[/green] {len(result.variables)} variables de "
        f"{len(result.collections)} colecciones guardadas en {output}"
    )


@cli.command()
@click.argument("old", type=click.Path(exists=True))
@click.argument("new", type=click.Path(exists=True))
@click.option("--json", "as_json", is_flag=True, help="Salida JSON")
def diff(old, new, as_json):
    """Compara dos baselines (OLD → NEW)."""
    old_vars = read_variables(old)
    new_vars = read_variables(new)
    result = diff_variables(old_vars, new_vars)

    if as_json:
        click.echo(canonical_json(result.to_dict()), nl=False)
        return

    if result.is_empty:
        console.print("[green]✓ Sin diferencias[/green]")
        return

    names = build_variable_name_map(old_vars, new_vars)
    console.print(diff_table(result, names))
    counts = result.counts()
    console.print(
        f"Añadidas: {counts['added']}  Eliminadas: {counts['removed']}  "
        f"Modificadas: {counts['changed']}"
    )


@cli.command()
@click.argument("baseline", type=click.Path(exists=True))
@click.pass_context
def drift(ctx, baseline):
    """Indica si el documento vivo se desvió del baseline."""
    committed = read_variables(baseline)

    async def _extract():
        async with open_client(ctx) as client:
            return await client.extract_variables()

    try:
        live = asyncio.run(_extract())
    except ProtocolError as e:
        fail(str(e))

    if has_drift(committed, live.variables):
        counts = diff_variables(committed, live.variables).counts()
        console.print(
            f"[yellow]El documento difiere del baseline[/yellow] "
            f"(+{counts['added']} -{counts['removed']} ~{counts['changed']})"
        )
        raise SystemExit(2)
    console.print("[green]✓ El documento coincide con el baseline[/green]")


@cli.command()
@click.argument("old", type=click.Path(exists=True))
@click.argument("new", type=click.Path(exists=True))
@click.option("--scan", "-s", type=click.Path(exists=True), help="Escaneo de uso guardado (si no, se escanea el documento)")
@click.option("--markdown", "-m", type=click.Path(), help="Exportar resumen markdown")
@click.option("--html", type=click.Path(), help="Exportar visualización HTML")
@click.option("--graphml", type=click.Path(), help="Exportar índice de uso a GraphML")
@click.option("--json", "as_json", is_flag=True, help="Salida JSON")
@click.pass_context
def impact(ctx, old, new, scan, markdown, html, graphml, as_json):
    """Componentes impactados por los cambios OLD → NEW."""
    old_vars = read_variables(old)
    new_vars = read_variables(new)
    result = diff_variables(old_vars, new_vars)

    if scan:
        index = read_index(scan)
    else:
        async def _scan():
            async with open_client(ctx) as client:
                return await scan_with_progress(client)

        try:
            index = asyncio.run(_scan())
        except ProtocolError as e:
            fail(str(e))

    names = build_variable_name_map(old_vars, new_vars)
    impacts = resolve_impact(result, index, names)

    if markdown:
        collections = derive_collections(new_vars)
        Path(markdown).write_text(
            render_markdown_summary(result, impacts, collections), encoding="utf-8"
        )
        console.print(f"[green]✓ Resumen guardado en:[/green] {markdown}")

    visualizer = GraphVisualizer()
    if html:
        visualizer.render_impact(impacts, Path(html))
        console.print(f"[green]✓ Visualización creada:[/green] {Path(html).absolute()}")
    if graphml:
        visualizer.export_graphml(index, Path(graphml))
        console.print(f"[green]✓ GraphML exportado:[/green] {graphml}")

    if as_json:
        click.echo(canonical_json([i.to_dict() for i in impacts]), nl=False)
        return

    if not impacts:
        console.print("[green]✓ Ningún componente afectado[/green]")
        return

    console.print(impact_table(impacts))
    console.print(
        f"{len(impacts)} componentes, {total_impacted_nodes(impacts)} nodos afectados"
    )


@cli.command()
@click.argument("proposal", type=click.Path(exists=True))
@click.option("--variables", "variables_file", type=click.Path(exists=True), required=True, help="Baseline con las variables conocidas")
@click.option("--json", "as_json", is_flag=True, help="Salida JSON")
def changeset(proposal, variables_file, as_json):
    """Valida una propuesta de ediciones y muestra el change-set."""
    known = read_variables(variables_file)
    try:
        edits, parse_warnings = parse_proposal(read_json(proposal))
    except ValueError as e:
        fail(f"{proposal}: {e}")

    result = build_change_set(edits, known)
    warnings = parse_warnings + result.warnings

    if as_json:
        click.echo(canonical_json({
            "changeSet": result.change_set.to_payload(),
            "warnings": warnings,
        }), nl=False)
        return

    print_warnings(warnings)
    payload = result.change_set.to_payload()
    table = Table(title="Change-set validado")
    table.add_column("Operación", style="cyan")
    table.add_column("Variable", style="magenta")
    table.add_column("Modo", style="yellow")
    table.add_column("Valor", style="green")
    for update in payload["updates"]:
        table.add_row("update", update["variableName"] or update["variableId"], update["modeId"], json.dumps(update["value"]))
    for create in payload["creates"]:
        table.add_row("create", create["variableName"], create["modeId"], json.dumps(create["value"]))
    console.print(table)
    console.print(
        f"{len(payload['updates'])} updates, {len(payload['creates'])} creates, "
        f"{len(warnings)} advertencias"
    )


@cli.command()
@click.argument("proposal", type=click.Path(exists=True))
@click.option("--no-remap", is_flag=True, help="No re-enlazar bindings con alias colgantes")
@click.pass_context
def apply(ctx, proposal, no_remap):
    """Valida y aplica una propuesta sobre el documento."""
    try:
        edits, parse_warnings = parse_proposal(read_json(proposal))
    except ValueError as e:
        fail(f"{proposal}: {e}")

    async def _apply():
        async with open_client(ctx) as client:
            extracted = await client.extract_variables()
            built = build_change_set(edits, extracted.variables, extracted.collections)
            if built.change_set.is_empty:
                return built, None
            index = None if no_remap else await client.scan_usage()
            applied = await client.apply_changes(built.change_set, extracted.variables, index)
            return built, applied

    try:
        built, result = asyncio.run(_apply())
    except ProtocolError as e:
        fail(str(e))

    print_warnings(parse_warnings + built.warnings)
    if result is None:
        console.print("[yellow]Nada que aplicar: el change-set está vacío[/yellow]")
        return

    for error in result.errors:
        console.print(f"[red]✗ {error}[/red]")

    table = Table(title="Resultado de la aplicación")
    table.add_column("Métrica", style="cyan")
    table.add_column("Cantidad", style="magenta", justify="right")
    table.add_row("Aplicados", str(result.applied))
    table.add_row("Remapeados", str(result.remapped))
    table.add_row("Fallidos", str(result.failed))
    console.print(table)

    if result.errors:
        raise SystemExit(1)


@cli.group()
def baseline():
    """Baseline versionado en GitHub."""
    pass


@baseline.command("fetch")
@click.option("--branch", default=None, help="Rama (GITHUB_BASE_BRANCH por defecto)")
@click.option("--path", "file_path", default=None, help="Ruta del archivo en el repositorio")
@click.option("--output", "-o", type=click.Path(), help="Archivo de salida (stdout si se omite)")
def baseline_fetch(branch, file_path, output):
    """Descarga el baseline de una rama."""

    async def _fetch():
        async with GitHubClient() as github:
            return await github.fetch_file(branch, file_path)

    try:
        content = asyncio.run(_fetch())
    except ProtocolError as e:
        fail(str(e))

    variables, warnings = load_baseline(content)
    print_warnings(warnings)

    if not output:
        click.echo(content, nl=False)
        return
    Path(output).write_text(content, encoding="utf-8")
    console.print(f"[green]✓[/green] {len(variables)} variables guardadas en {output}")


@baseline.command("branches")
def baseline_branches():
    """Lista las ramas del repositorio."""

    async def _list():
        async with GitHubClient() as github:
            return await github.list_branches()

    try:
        branches = asyncio.run(_list())
    except ProtocolError as e:
        fail(str(e))

    for name in branches:
        console.print(f"  • {name}")


@cli.group()
def pr():
    """Pull requests con cambios de variables."""
    pass


@pr.command("create")
@click.argument("new", type=click.Path(exists=True))
@click.option("--branch", "target_branch", required=True, help="Rama destino del PR")
@click.option("--base", "base_branch", default=None, help="Rama base (GITHUB_BASE_BRANCH por defecto)")
@click.option("--path", "file_path", default=None, help="Ruta del baseline en el repositorio")
@click.option("--title", default="Update design tokens", help="Título del PR")
@click.option("--scan", "-s", type=click.Path(exists=True), help="Escaneo de uso para el resumen de impacto")
@click.option("--notify", is_flag=True, help="Notificar a Teams (TEAMS_WEBHOOK_URL)")
def pr_create(new, target_branch, base_branch, file_path, title, scan, notify):
    """Abre un PR con el baseline NEW y el resumen del diff."""
    new_vars = read_variables(new)
    base_branch = base_branch or Config.GITHUB_BASE_BRANCH
    file_path = file_path or Config.GITHUB_FILE_PATH
    index = read_index(scan) if scan else None

    async def _create():
        async with GitHubClient() as github:
            committed, warnings = load_baseline(await github.fetch_file(base_branch, file_path))
            result = diff_variables(committed, new_vars)
            if result.is_empty:
                return result, warnings, None

            impacts = resolve_impact(result, index) if index is not None else []
            body = render_markdown_summary(result, impacts, derive_collections(new_vars), title=title)
            url = await github.create_pull_request(
                target_branch=target_branch,
                title=title,
                body=body,
                files={file_path: dump_baseline(new_vars)},
                base_branch=base_branch,
            )
            if notify:
                await TeamsNotifier().notify(
                    Config.TEAMS_WEBHOOK_URL, url, github.full_name, target_branch, result
                )
            return result, warnings, url

    try:
        result, warnings, url = asyncio.run(_create())
    except ProtocolError as e:
        fail(str(e))

    print_warnings(warnings)
    if url is None:
        console.print("[yellow]Sin cambios respecto al baseline; no se crea el PR[/yellow]")
        return
    counts = result.counts()
    console.print(
        f"[green]✓ PR listo:[/green] {url} "
        f"(+{counts['added']} -{counts['removed']} ~{counts['changed']})"
    )


@cli.command()
@click.argument("request")
@click.option("--output", "-o", type=click.Path(), help="Guardar la propuesta validada (JSON)")
@click.option("--no-scan", is_flag=True, help="No incluir uso de componentes en el prompt")
@click.pass_context
def propose(ctx, request, output, no_scan):
    """Pide a la IA ediciones para REQUEST y las valida."""

    async def _propose():
        async with open_client(ctx) as client:
            extracted = await client.extract_variables()
            index = None if no_scan else await client.scan_usage()
        async with AIClient() as ai:
            edits, warnings = await ai.propose_edits(
                request, extracted.variables, extracted.collections, index
            )
        return extracted, edits, warnings

    try:
        extracted, edits, warnings = asyncio.run(_propose())
    except ProtocolError as e:
        fail(str(e))

    built = build_change_set(edits, extracted.variables, extracted.collections)
    print_warnings(warnings + built.warnings)

    accepted = built.change_set.to_payload()
    console.print(
        f"La IA propuso {len(edits)} ediciones; {len(built.change_set)} pasaron la validación"
    )
    if output:
        Path(output).write_text(canonical_json(accepted), encoding="utf-8")
        console.print(f"[green]✓ Propuesta guardada en:[/green] {output}")
    else:
        click.echo(canonical_json(accepted), nl=False)


@cli.group()
def graph():
    """Exportación del grafo de uso a Neo4j."""
    pass


@graph.command("load")
@click.option("--clear", is_flag=True, help="Limpiar el grafo antes de cargar")
@click.pass_context
def graph_load(ctx, clear):
    """Carga variables, colecciones y uso del documento en Neo4j."""

    async def _read():
        async with open_client(ctx) as client:
            extracted = await client.extract_variables()
            index = await scan_with_progress(client)
        return extracted, index

    try:
        extracted, index = asyncio.run(_read())
    except ProtocolError as e:
        fail(str(e))

    with Neo4jLoader() as loader:
        loader.setup_schema()
        if clear:
            loader.clear_graph()
            console.print("[yellow]Grafo limpiado[/yellow]")
        loader.load_collections(extracted.collections)
        loader.load_variables(extracted.variables)
        loader.load_usage_index(index)
        stats = loader.get_stats()

    console.print("[bold green]✓ Carga completada[/bold green]")
    console.print(stats_table(stats))


def stats_table(stats) -> Table:
    table = Table(title="Estadísticas del Grafo")
    table.add_column("Tipo", style="cyan")
    table.add_column("Cantidad", style="magenta", justify="right")
    table.add_row("Variables", str(stats["variables"]))
    table.add_row("Colecciones", str(stats["collections"]))
    table.add_row("Componentes", str(stats["components"]))
    table.add_row("Usos", str(stats["usages"]))
    return table


@graph.command("stats")
def graph_stats():
    """Muestra estadísticas del grafo."""
    with Neo4jLoader() as loader:
        stats = loader.get_stats()
    console.print(stats_table(stats))


@cli.command()
@click.argument("node_ids", nargs=-1, required=True)
@click.pass_context
def select(ctx, node_ids):
    """Resalta nodos en el documento."""

    async def _select():
        async with open_client(ctx) as client:
            await client.select_nodes(node_ids)

    try:
        asyncio.run(_select())
    except ProtocolError as e:
        fail(str(e))
    console.print(f"[green]✓[/green] {len(node_ids)} nodos seleccionados")


if __name__ == "__main__":
    cli()
