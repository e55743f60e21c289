from rich.pretty import pprint

from helmsman import *


def deploy(context):
    pprint({
        "file": context.args().get("file"),
        "target": context.string("target"),
        "dry-run": context.bool("dry-run"),
    })


app = Application(
    "main",
    usage="Deploy archives",
    commands=[
        Command(
            "deploy",
            aliases=["ship"],
            usage="Deploy an archive",
            flags=[
                StringFlag("target", aliases=("t",), usage="Deployment `environment`", default="staging"),
                BoolFlag("dry-run", usage="Only print what would be done"),
            ],
            args=[Arg("file", description="Archive to deploy")],
            action=deploy,
        ),
    ],
    flag_env_prefix="MAIN",
)


if __name__ == '__main__':
    invoke(app)
