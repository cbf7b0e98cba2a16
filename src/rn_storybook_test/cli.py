import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

import typer

from .comparison.screenshots import (
    ComparisonOptions,
    ComparisonResult,
    clear_directory,
    compare_screenshots,
    update_baseline as copy_to_baseline,
)
from .config import DEFAULT_APP_ID, DEFAULT_BASE_URI, DEFAULT_TOLERANCE, Settings, resolve_path
from .logging import get_logger
from .maestro.generator import write_maestro_test
from .maestro.index import StoryEntry, StoryIndexError, load_story_index, select_stories
from .output.report import generate_html_report
from .regions.analysis import analyze_diff_image, list_diff_images, story_name_from_diff
from .regions.detection import DiffRegion
from .regions.flags import format_ignore_regions, parse_ignore_regions
from .simulator.simctl import SimctlError
from .snapshot.session import SnapshotOptions, StoryTimeoutError, snapshot_stories

app = typer.Typer(
    help="rn-storybook-test – visual regression testing for React Native Storybook",
    no_args_is_help=True,
)

IGNORE_REGIONS_HELP = 'Ignore custom regions (format: "x,y,w,h;x2,y2,w2,h2")'


def safe_echo(message: str) -> None:
    """Echo message with an ASCII fallback for consoles that cannot encode emoji."""
    try:
        typer.echo(message)
    except UnicodeEncodeError:
        fallback_message = (
            message.replace("✅", "[OK]")
            .replace("❌", "[FAIL]")
            .replace("⚠️", "[WARN]")
            .replace("📊", "[STATS]")
            .replace("📄", "[REPORT]")
            .replace("📋", "[LIST]")
            .replace("🎯", "[REGION]")
            .replace("👀", "[PREVIEW]")
            .replace("💡", "[TIP]")
            .replace("📁", "[DIR]")
        )
        typer.echo(fallback_message.encode("ascii", "replace").decode("ascii"))


def _load_stories(config_dir: Path, index_file: Optional[Path]) -> List[StoryEntry]:
    entries = load_story_index(resolve_path(config_dir), index_file)
    return select_stories(entries)


def _print_results(result: ComparisonResult) -> None:
    safe_echo("\n📊 Comparison Results:")
    safe_echo(f"  Total: {result.total}")
    safe_echo(f"  Matches: {result.matches}")
    safe_echo(f"  Differences: {result.differences}")
    safe_echo(f"  Missing baselines: {result.missing_baselines}")


def _compare_and_report(
    options: ComparisonOptions,
    html_report: bool,
    fail_on_empty: bool = False,
) -> None:
    """Run the comparison, print the summary and exit 1 on differences."""
    logger = get_logger(__name__)

    result = compare_screenshots(options)
    _print_results(result)

    if html_report:
        report_path = generate_html_report(result, options)
        safe_echo(f"\n📄 HTML report generated: {report_path}")

    if result.missing_baselines > 0:
        safe_echo("\n💡 Tip: Run with --update-baseline to set current screenshots as baseline")

    if result.differences > 0:
        safe_echo(f"\n⚠️  {result.differences} screenshots have differences")
        safe_echo(f"Diff images saved to: {options.diffs_dir}")
        if html_report:
            safe_echo("Open the HTML report to view detailed comparisons")
        raise typer.Exit(code=1)

    if fail_on_empty and result.total == 0:
        logger.warning("No screenshots found to compare")
        raise typer.Exit(code=1)

    safe_echo("\n✅ All screenshots match!")


def _update_baseline_step(screenshots_dir: Path, baseline_dir: Path, hint: str) -> None:
    logger = get_logger(__name__)
    if not screenshots_dir.exists():
        logger.error(f"Screenshots directory not found: {screenshots_dir}")
        logger.error(hint)
        raise typer.Exit(code=1)

    try:
        count = copy_to_baseline(screenshots_dir, baseline_dir)
    except OSError as exc:
        logger.error(f"Failed to update baseline screenshots: {exc}")
        raise typer.Exit(code=1) from exc
    safe_echo(f"✅ Updated {count} baseline screenshots")


def _compare_step(
    screenshots_dir: Path,
    baseline_dir: Path,
    diffs_dir: Path,
    tolerance: float,
    strict: bool,
    html_report: bool,
    ignore_regions: List[DiffRegion],
    odiff_bin: str,
    hint: str,
) -> None:
    logger = get_logger(__name__)
    logger.info("Comparing screenshots...")

    clear_directory(diffs_dir)

    if not screenshots_dir.exists():
        logger.error(f"Screenshots directory not found: {screenshots_dir}")
        logger.error(hint)
        raise typer.Exit(code=1)

    if not baseline_dir.exists():
        logger.warning(f"Baseline directory not found: {baseline_dir}")
        logger.warning("No baseline screenshots to compare against")
        logger.warning("Consider running with --update-baseline to create one")
        raise typer.Exit(code=0)

    options = ComparisonOptions(
        screenshots_dir=screenshots_dir,
        baseline_dir=baseline_dir,
        diffs_dir=diffs_dir,
        tolerance=tolerance,
        strict=strict,
        ignore_regions=ignore_regions,
        odiff_bin=odiff_bin,
    )
    _compare_and_report(options, html_report)


@app.command("gen-maestro")
def gen_maestro(
    config_dir: Path = typer.Option(Path(".rnstorybook"), "--config-dir", "-c", help="Path to Storybook config directory"),
    output_dir: Path = typer.Option(Path(".maestro"), "--output-dir", "-o", help="Output directory for maestro files"),
    app_id: str = typer.Option(DEFAULT_APP_ID, "--app-id", "-a", help="App ID for maestro tests"),
    base_uri: str = typer.Option(DEFAULT_BASE_URI, "--base-uri", "-u", help="Base URI for deep links"),
    test_name: str = typer.Option("storybook-screenshots", "--test-name", "-n", help="Name for the maestro test file"),
    screenshots_dir: Optional[str] = typer.Option(None, "--screenshots-dir", "-s", help="Directory for screenshots (default: <output-dir>/screenshots)"),
    index_file: Optional[Path] = typer.Option(None, "--index-file", exists=True, dir_okay=False, help="Prebuilt Storybook index.json"),
) -> None:
    """Generate a Maestro test file that screenshots every Storybook story."""
    logger = get_logger(__name__)

    try:
        stories = _load_stories(config_dir, index_file)
        test_path = write_maestro_test(
            stories,
            resolve_path(output_dir),
            app_id=app_id,
            base_uri=base_uri,
            test_name=test_name,
            screenshots_path=screenshots_dir or f"{output_dir.as_posix()}/screenshots",
        )
    except (StoryIndexError, OSError) as exc:
        logger.error(f"Error generating Maestro test file: {exc}")
        raise typer.Exit(code=1) from exc

    safe_echo(f"\n✅ Generated Maestro test file: {test_path}")
    safe_echo("\nTo run the tests:")
    safe_echo(f"  maestro test {test_path}")


@app.command("screenshot-stories")
def screenshot_stories(
    config_dir: Path = typer.Option(Path(".rnstorybook"), "--config-dir", "-c", help="Path to Storybook config directory"),
    output_dir: Path = typer.Option(Path(".maestro"), "--output-dir", "-o", help="Output directory for maestro files"),
    app_id: str = typer.Option(DEFAULT_APP_ID, "--app-id", "-a", help="App ID for maestro tests"),
    base_uri: str = typer.Option(DEFAULT_BASE_URI, "--base-uri", "-u", help="Base URI for deep links"),
    test_name: str = typer.Option("storybook-screenshots", "--test-name", "-n", help="Name for the maestro test file"),
    baseline_dir: Optional[Path] = typer.Option(None, "--baseline-dir", "-b", help="Baseline screenshots (default: <output-dir>/baseline)"),
    screenshots_dir: Optional[Path] = typer.Option(None, "--screenshots-dir", "-s", help="New screenshots (default: <output-dir>/screenshots)"),
    diffs_dir: Optional[Path] = typer.Option(None, "--diffs-dir", "-d", help="Diff images (default: <output-dir>/diffs)"),
    tolerance: float = typer.Option(DEFAULT_TOLERANCE, "--tolerance", "-t", help="Tolerance for image comparison in percent"),
    strict: bool = typer.Option(False, "--strict", help="Use strict image comparison"),
    skip_generate: bool = typer.Option(False, "--skip-generate", help="Skip generating maestro test file"),
    skip_test: bool = typer.Option(False, "--skip-test", help="Skip running maestro tests"),
    skip_compare: bool = typer.Option(False, "--skip-compare", help="Skip comparing screenshots"),
    update_baseline: bool = typer.Option(False, "--update-baseline", help="Copy current screenshots to baseline directory"),
    html_report: bool = typer.Option(False, "--html-report", help="Generate HTML comparison report"),
    ignore_regions: Optional[str] = typer.Option(None, "--ignore-regions", help=IGNORE_REGIONS_HELP),
    index_file: Optional[Path] = typer.Option(None, "--index-file", exists=True, dir_okay=False, help="Prebuilt Storybook index.json"),
) -> None:
    """Take screenshots of all stories with Maestro and compare them against baselines."""
    logger = get_logger(__name__)
    settings = Settings(maestro_dir=output_dir)

    screenshots_dir = screenshots_dir or settings.maestro_screenshots_dir
    baseline_dir = baseline_dir or settings.maestro_baseline_dir
    diffs_dir = diffs_dir or settings.maestro_diffs_dir
    resolved_output_dir = resolve_path(output_dir)
    resolved_screenshots_dir = resolve_path(screenshots_dir)
    test_path = resolved_output_dir / f"{test_name}.yaml"

    if not skip_generate:
        logger.info("Generating Maestro test file...")
        try:
            stories = _load_stories(config_dir, index_file)
            write_maestro_test(
                stories,
                resolved_output_dir,
                app_id=app_id,
                base_uri=base_uri,
                test_name=test_name,
                screenshots_path=screenshots_dir.as_posix(),
            )
        except (StoryIndexError, OSError) as exc:
            logger.error(f"Failed to generate Maestro test file: {exc}")
            raise typer.Exit(code=1) from exc

    if not skip_test:
        logger.info("Running Maestro tests...")
        if not test_path.exists():
            logger.error(f"Maestro test file not found at: {test_path}")
            logger.error("Run without --skip-generate to generate the test file first")
            raise typer.Exit(code=1)

        clear_directory(resolved_screenshots_dir)
        resolved_screenshots_dir.mkdir(parents=True, exist_ok=True)

        # Screenshots taken before a failure are still worth comparing
        try:
            completed = subprocess.run(["maestro", "test", str(test_path)])
        except OSError as exc:
            logger.error(f"Maestro tests failed: {exc}")
        else:
            if completed.returncode == 0:
                safe_echo("✅ Maestro tests completed successfully")
            else:
                logger.error(f"Maestro tests failed with exit code {completed.returncode}")

    hint = "Run without --skip-test to generate screenshots first"

    if update_baseline:
        _update_baseline_step(resolved_screenshots_dir, resolve_path(baseline_dir), hint)
        return

    if not skip_compare:
        _compare_step(
            resolved_screenshots_dir,
            resolve_path(baseline_dir),
            resolve_path(diffs_dir),
            tolerance,
            strict,
            html_report,
            parse_ignore_regions(ignore_regions or ""),
            settings.odiff_bin,
            hint,
        )


@app.command("screenshot-stories-ws")
def screenshot_stories_ws(
    config_dir: Path = typer.Option(Path(".rnstorybook"), "--config-dir", "-c", help="Path to Storybook config directory"),
    app_id: str = typer.Option(DEFAULT_APP_ID, "--app-id", "-a", help="App bundle ID"),
    baseline_dir: Path = typer.Option(Path("screenshots/baseline"), "--baseline-dir", "-b", help="Directory containing baseline screenshots"),
    screenshots_dir: Path = typer.Option(Path("screenshots/current"), "--screenshots-dir", "-s", help="Directory for new screenshots"),
    diffs_dir: Path = typer.Option(Path("screenshots/diffs"), "--diffs-dir", "-d", help="Directory for diff images"),
    tolerance: float = typer.Option(DEFAULT_TOLERANCE, "--tolerance", "-t", help="Tolerance for image comparison in percent"),
    strict: bool = typer.Option(False, "--strict", help="Use strict image comparison"),
    host: str = typer.Option("localhost", "--host", help="WebSocket host"),
    port: int = typer.Option(7007, "--port", help="WebSocket port"),
    secured: bool = typer.Option(False, "--secured", help="Use WSS instead of WS"),
    wait_time: int = typer.Option(2000, "--wait-time", help="Wait time in ms before starting tests"),
    deep_link: Optional[str] = typer.Option(None, "--deep-link", help="Deep link URL to open after launching (useful for Expo Go)"),
    skip_snapshot: bool = typer.Option(False, "--skip-snapshot", help="Skip taking screenshots"),
    skip_compare: bool = typer.Option(False, "--skip-compare", help="Skip comparing screenshots"),
    update_baseline: bool = typer.Option(False, "--update-baseline", help="Copy current screenshots to baseline directory"),
    html_report: bool = typer.Option(False, "--html-report", help="Generate HTML comparison report"),
    ignore_regions: Optional[str] = typer.Option(None, "--ignore-regions", help=IGNORE_REGIONS_HELP),
    index_file: Optional[Path] = typer.Option(None, "--index-file", exists=True, dir_okay=False, help="Prebuilt Storybook index.json"),
) -> None:
    """Take screenshots over the Storybook WebSocket channel (iOS Simulator) and compare."""
    logger = get_logger(__name__)
    settings = Settings()
    resolved_screenshots_dir = resolve_path(screenshots_dir)

    if not skip_snapshot:
        logger.info("Taking screenshots via WebSocket...")
        clear_directory(resolved_screenshots_dir)
        resolved_screenshots_dir.mkdir(parents=True, exist_ok=True)

        options = SnapshotOptions(
            app_id=app_id,
            host=host,
            port=port,
            secured=secured,
            wait_time=wait_time,
            deep_link=deep_link,
        )
        try:
            stories = _load_stories(config_dir, index_file)
            logger.info(f"Found {len(stories)} stories to screenshot")
            snapshot_stories(stories, resolved_screenshots_dir, options)
        except (StoryIndexError, SimctlError, StoryTimeoutError, OSError) as exc:
            logger.error(f"Screenshot capture failed: {exc}")
            raise typer.Exit(code=1) from exc
        safe_echo("✅ Screenshots completed successfully")

    hint = "Run without --skip-snapshot to generate screenshots first"

    if update_baseline:
        _update_baseline_step(resolved_screenshots_dir, resolve_path(baseline_dir), hint)
        return

    if not skip_compare:
        _compare_step(
            resolved_screenshots_dir,
            resolve_path(baseline_dir),
            resolve_path(diffs_dir),
            tolerance,
            strict,
            html_report,
            parse_ignore_regions(ignore_regions or ""),
            settings.odiff_bin,
            hint,
        )


@app.command("compare-screenshots")
def compare_screenshots_command(
    screenshots_dir: Path = typer.Option(Path(".maestro/screenshots"), "--screenshots-dir", "-s", help="Directory containing new screenshots"),
    baseline_dir: Path = typer.Option(Path(".maestro/baseline"), "--baseline-dir", "-b", help="Directory containing baseline screenshots"),
    diffs_dir: Path = typer.Option(Path(".maestro/diffs"), "--diffs-dir", "-d", help="Directory for diff images"),
    tolerance: float = typer.Option(DEFAULT_TOLERANCE, "--tolerance", "-t", help="Tolerance for image comparison in percent"),
    strict: bool = typer.Option(False, "--strict", help="Use strict image comparison"),
    update_baseline: bool = typer.Option(False, "--update-baseline", help="Copy current screenshots to baseline directory"),
    html_report: bool = typer.Option(False, "--html-report", help="Generate HTML comparison report"),
    ignore_regions: Optional[str] = typer.Option(None, "--ignore-regions", help=IGNORE_REGIONS_HELP),
) -> None:
    """Compare screenshots against baseline images."""
    logger = get_logger(__name__)
    settings = Settings()

    resolved_screenshots_dir = resolve_path(screenshots_dir)
    resolved_baseline_dir = resolve_path(baseline_dir)

    if update_baseline:
        _update_baseline_step(
            resolved_screenshots_dir, resolved_baseline_dir, "Take screenshots first"
        )
        return

    if not resolved_screenshots_dir.exists():
        logger.error(f"Screenshots directory not found: {resolved_screenshots_dir}")
        raise typer.Exit(code=1)

    options = ComparisonOptions(
        screenshots_dir=resolved_screenshots_dir,
        baseline_dir=resolved_baseline_dir,
        diffs_dir=resolve_path(diffs_dir),
        tolerance=tolerance,
        strict=strict,
        ignore_regions=parse_ignore_regions(ignore_regions or ""),
        odiff_bin=settings.odiff_bin,
    )

    logger.info(f"Screenshots: {options.screenshots_dir}")
    logger.info(f"Baseline: {options.baseline_dir}")
    logger.info(f"Diffs: {options.diffs_dir}")
    logger.info(f"Tolerance: {tolerance}, strict mode: {strict}")

    _compare_and_report(options, html_report, fail_on_empty=True)


def _default_detect_dirs() -> Tuple[Path, Path]:
    settings = Settings()
    if resolve_path(settings.ws_diffs_dir).exists():
        return settings.ws_diffs_dir, settings.ws_screenshots_dir
    return settings.maestro_diffs_dir, settings.maestro_screenshots_dir


@app.command("detect-ignore-regions")
def detect_ignore_regions(
    diffs_dir: Optional[Path] = typer.Option(None, "--diffs-dir", "-d", help="Directory containing diff images (default: ./screenshots/diffs or ./.maestro/diffs)"),
    screenshots_dir: Optional[Path] = typer.Option(None, "--screenshots-dir", "-s", help="Directory containing screenshots (default: ./screenshots/current or ./.maestro/screenshots)"),
    diff: Optional[str] = typer.Option(None, "--diff", help="Diff image to analyse, skipping the interactive prompt"),
) -> None:
    """Select a diff image and print ignore regions for its differences."""
    logger = get_logger(__name__)

    default_diffs, default_screenshots = _default_detect_dirs()
    resolved_diffs_dir = resolve_path(diffs_dir or default_diffs)
    resolved_screenshots_dir = resolve_path(screenshots_dir or default_screenshots)

    if not resolved_diffs_dir.exists():
        logger.error(f"Diffs directory not found: {resolved_diffs_dir}")
        logger.error("Run screenshot comparison first to generate diff images")
        raise typer.Exit(code=1)

    diff_files = list_diff_images(resolved_diffs_dir)
    if not diff_files:
        logger.warning("No diff images found in the diffs directory")
        safe_echo("💡 Run screenshot comparison without ignore regions to generate diff images first")
        raise typer.Exit(code=0)

    names = [story_name_from_diff(path) for path in diff_files]

    if diff is not None:
        matches = [path for path, name in zip(diff_files, names) if diff in (path.name, name)]
        if not matches:
            logger.error(f"Diff image not found: {diff}")
            raise typer.Exit(code=1)
        selected = matches[0]
    else:
        safe_echo(f"📁 Found {len(diff_files)} diff images:\n")
        safe_echo("🎯 Which diff image would you like to analyze for ignore regions?")
        for index, name in enumerate(names, start=1):
            safe_echo(f"  {index}. {name}")
        safe_echo("")

        choice = typer.prompt("Enter your choice (number)", type=int)
        if not 1 <= choice <= len(diff_files):
            safe_echo("Invalid choice. Exiting.")
            raise typer.Exit(code=1)
        selected = diff_files[choice - 1]

    safe_echo(f"\n✅ Selected: {selected.name}")

    analysis = analyze_diff_image(selected, resolved_screenshots_dir)
    regions = analysis.regions

    if not regions:
        safe_echo("\n⚠️  No suitable ignore regions found in this diff image.")
        safe_echo("This could mean:")
        safe_echo("- The differences are very scattered (not suitable for rectangular ignore regions)")
        safe_echo("- The diff colors are different than expected")
        safe_echo("- The differences are legitimate content changes")
        raise typer.Exit(code=0)

    safe_echo("\n🎯 Suggested ignore regions:\n")
    for index, region in enumerate(regions, start=1):
        safe_echo(
            f"Region {index}: x={region.x}, y={region.y}, w={region.width}, "
            f"h={region.height} ({region.area}px)"
        )

    if analysis.preview_path is not None:
        safe_echo("\n👀 Preview image with ignore regions highlighted in red:")
        safe_echo(f"   {analysis.preview_path.resolve().as_uri()}")

    regions_flag = format_ignore_regions(regions)
    safe_echo("\n📋 To use these ignore regions, run your comparison command with:\n")
    safe_echo(f'--ignore-regions "{regions_flag}"\n')
    safe_echo("Full example commands:")
    for command in ("screenshot-stories", "screenshot-stories-ws", "compare-screenshots"):
        safe_echo(f'rn-storybook-test {command} --ignore-regions "{regions_flag}"')

    safe_echo("\n💡 Tip: You can also manually adjust the coordinates if needed!")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
