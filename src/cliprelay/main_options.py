"""Click option class for the role flags.

A device runs either as the relay or as a client, never both.
"""
import click


def _check_single_role(name: str, other_roles: list[str], opts: dict) -> None:
    """Raise UsageError if more than one role flag was given.

    Args:
        name: Name of the current role option.
        other_roles: Names of the role options it excludes.
        opts: Dictionary of parsed options.

    Raises:
        click.UsageError: If another role flag is present.
    """
    chosen = [other for other in other_roles if opts.get(other)]
    if chosen:
        roles = ", ".join(f"--{role}" for role in [name, *chosen])
        raise click.UsageError(f"A device has exactly one role; {roles} are mutually exclusive")


class MutuallyExclusiveOption(click.Option):
    """Role flag that refuses to be combined with the other role flags."""

    def __init__(self, *args, **kwargs):
        self.not_required_if = kwargs.pop("not_required_if", [])
        super().__init__(*args, **kwargs)

    def handle_parse_result(self, ctx, opts, args):
        if opts.get(self.name):
            _check_single_role(self.name, self.not_required_if, opts)
        return super().handle_parse_result(ctx, opts, args)
