"""
Helmsman help and version rendering.

Scope
- render_app_help(), render_category_help(), render_command_help() and
  render_version() build rich renderables; nothing is printed by them.
- show_*() print through the application's help_printer on its writer.
- check_help(), check_command_help(), check_version(): the flag
  probes the application and commands run before dispatching.
- help_command() / version_command(): the built-in "self:help" and
  "self:version" commands, created fresh for every application.
- find_alternatives(): suggestions attached to CommandNotFoundError.

Palette keys (override through __styles__ in __main__)
- program-name, program-version, section-label, category-name,
  command-name, option-name, argument-name, description, help-section
"""
import difflib
from collections import defaultdict

from rich.console import Group
from rich.padding import Padding
from rich.table import Table
from rich.text import Text

from .arguments import Arg
from .commands import Alias, Command
from .faults import CommandNotFoundError


def _palette():
    return defaultdict(str, {
        # header
        "program-name": "bold #22C55E",  # green program name
        "program-version": "#FFD600",  # amber version

        # sections
        "section-label": "bold #FFD600",  # amber section titles
        "category-name": "#FFD600",
        "help-section": "#D1D5DB",

        # rows
        "command-name": "#22C55E",
        "option-name": "#22C55E",
        "argument-name": "#22C55E",
        "description": "",
    } | getattr(__import__("__main__"), "__styles__", {}))


def _text(fragment, style=""):
    if not fragment:
        return Text("")
    return Text(str(fragment), style)


def _section(title, styles, /):
    return Text.assemble(_text(title, styles["section-label"]), ":")


def _indent(renderable, width=2, /):
    return Padding(renderable, (0, 0, 0, width))


def _grid(rows, style, styles, /):
    table = Table.grid(padding=(0, 2))
    table.add_column(no_wrap=True)
    table.add_column()
    for name, description in rows:
        table.add_row(_text(name, style), _text(description, styles["description"]))
    return table


def _header(app, styles, /):
    header = Text.assemble(_text(app.name, styles["program-name"]))
    if app.version:
        header.append(" version ").append(app.version, styles["program-version"])
    if app.copyright:
        header.append(" " + app.copyright)
    return header


def _global_usage(app, styles, /):
    renders = [_header(app, styles), _text(app.usage), Text(), _section("Usage", styles)]

    usage = app.help_name
    if app.visible_flags():
        usage += " [global options]"
    if app.commands:
        usage += " <command> [command options]"
    renders.append(_indent(_text(usage + " [arguments...]")))

    if app.description:
        renders.extend((Text(), _text(app.description)))

    if flags := app.visible_flags():
        renders.extend((
            Text(),
            _section("Global options", styles),
            _indent(_grid([flag.describe() for flag in flags], styles["option-name"], styles)),
        ))

    return renders


def _commands(commands, styles, /):
    return _grid(
        [(", ".join(command.names()), command.usage) for command in commands],
        styles["command-name"],
        styles,
    )


def render_app_help(app, /):
    styles = _palette()
    renders = _global_usage(app, styles)

    if app.visible_commands():
        renders.extend((Text(), _section("Available commands", styles)))
        for category in app.visible_categories():
            if category.name:
                renders.append(_indent(_text(category.name, styles["category-name"]), 1))
            renders.append(_indent(_commands(category.visible_commands(), styles)))

    return Group(*renders)


def render_category_help(app, categories, /):
    styles = _palette()
    renders = _global_usage(app, styles)

    for category in categories:
        renders.extend((
            Text(),
            _section(f'Available commands for the "{category.name}" namespace', styles),
            _indent(_commands(category.visible_commands(), styles), 1),
        ))

    return Group(*renders)


def render_command_help(app, command, /):
    """
    sections: Description (usage line), Usage, Arguments, Options, Help
    (long description); empty sections are left out.
    """
    styles = _palette()
    renders = []

    if command.usage:
        renders.extend((_section("Description", styles), _indent(_text(command.usage)), Text()))

    usage = command.help_name
    if command.visible_flags():
        usage += " [options]"
    renders.extend((_section("Usage", styles), _indent(_text(usage + command.arguments().usage()))))

    if arguments := command.arguments():
        renders.extend((
            Text(),
            _section("Arguments", styles),
            _indent(_grid([argument.describe() for argument in arguments], styles["argument-name"], styles)),
        ))

    if flags := command.visible_flags():
        renders.extend((
            Text(),
            _section("Options", styles),
            _indent(_grid([flag.describe() for flag in flags], styles["option-name"], styles)),
        ))

    if command.description:
        renders.extend((
            Text(),
            _section("Help", styles),
            Text(),
            _indent(_text(command.description, styles["help-section"])),
        ))

    return Group(*renders)


def render_version(app, /):
    styles = _palette()
    return _header(app, styles).append(f" ({app.build_date} - {app.channel})")


def print_help(output, renderable, /):
    """default help printer: print renderable on the output console."""
    output.print(renderable)


def print_version(context, /):
    """default version printer."""
    app = context.app
    app.help_printer(app.writer, render_version(app))


def show_app_help(context, /):
    app = context.app
    app.help_printer(app.writer, render_app_help(app))


def show_app_help_action(context, /):
    """
    default application action and "self:help" action: help for the command
    (or category) named by the first positional, application help otherwise.
    """
    args = context.args()
    if args.present():
        show_command_help(context, args.first())
        return
    show_app_help(context)


def print_command_help(context, command, /):
    """help for command; description_func, when set, refreshes the description."""
    app = context.app
    if command.description_func is not None:
        command.description = command.description_func(command, app)
    app.help_printer(app.writer, render_command_help(app, command))


def show_command_help(context, name, /):
    """
    help for the best command matching name, else for the visible categories
    starting with name.

    raises CommandNotFoundError when neither exists.
    """
    app = context.app
    if (command := app.best_command(name)) is not None:
        print_command_help(context, command)
        return

    categories = [category for category in app.visible_categories() if category.name.startswith(name)]
    if categories:
        app.help_printer(app.writer, render_category_help(app, categories))
        return

    raise CommandNotFoundError(name, app)


def show_version(context, /):
    context.app.version_printer(context)


def check_help(context, /):
    if (flag := context.app.help_flag) is None:
        return False
    return any(context.bool(name) for name in flag.names())


def check_version(context, /):
    if (flag := context.app.version_flag) is None:
        return False
    return any(context.bool(name) for name in flag.names())


def check_command_help(context, command, /):
    if context.bool("h") or context.bool("help"):
        print_command_help(context, command)
        return True
    return False


def help_command():
    return Command(
        "help",
        category="self",
        aliases=(Alias("help"), Alias("list")),
        usage="Display help for a command or a category of commands",
        args=(Arg("command", optional=True),),
        action=show_app_help_action,
    )


def version_command():
    return Command(
        "version",
        category="self",
        aliases=(Alias("version"),),
        usage="Display the application version",
        action=show_version,
    )


def _close(name, candidate, /):
    return bool(difflib.get_close_matches(name, [candidate], 1, 2 / 3))


def find_alternatives(name, commands, /):
    """
    sorted suggestions for an unknown command name.

    a command whose category equals or closely resembles name suggests its
    full name; otherwise each visible name is suggested when it starts with,
    ends with, or closely resembles name.
    """
    alternatives = []

    for command in commands:
        if command.category and (command.category == name or _close(name, command.category)):
            alternatives.append(command.full_name())
            continue

        for candidate in command.names():
            if candidate.startswith(name) or candidate.endswith(name) or _close(name, candidate):
                alternatives.append(candidate)

    return sorted(alternatives)


__all__ = (
    "render_app_help",
    "render_category_help",
    "render_command_help",
    "render_version",
    "print_help",
    "print_version",
    "show_app_help",
    "show_app_help_action",
    "print_command_help",
    "show_command_help",
    "show_version",
    "check_help",
    "check_version",
    "check_command_help",
    "help_command",
    "version_command",
    "find_alternatives",
)
