import logging
import os

from rich.pretty import pprint

from flagstaff import *

__prog__ = "fstool"
__codes__ = {FaultCode.UNKNOWN_SUBCOMMAND: "E-CMD"}

logging.basicConfig(level=os.environ.get("FLAGSTAFF_LOG", "WARNING"))


class Hash(Command):
    """print the hash of files"""

    def __init__(self):
        super().__init__(
            name="hash",
            descr="print the hash of files",
            examples=[("hash two files", "fstool hash --type sha256 a.txt b.txt")],
        )
        self.algorithm = "sha256"
        self.files = []
        self.add_flag(choice(
            "type",
            choices=("md5", "sha1", "sha256", "sha512"),
            callback=self.use,
            label="hash-algo",
            descr="hash algorithm",
        ))
        self.expect_paths("files", self.add)

    def use(self, algorithm):
        self.algorithm = algorithm

    def add(self, *files):
        self.files.extend(files)

    def run(self):
        pprint({"algorithm": self.algorithm, "files": self.files})


@command(descr="show the parsed tool")
def show():
    pprint(tool)


tool = MultiCommand({"hash": Hash, "show": lambda: show}, name=__prog__, shell=True)


@tool.flag("verbose", "v")
def verbose():
    logging.getLogger("flagstaff").setLevel(logging.DEBUG)


if __name__ == '__main__':
    invoke(tool)
