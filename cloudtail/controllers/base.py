import os

from cement.ext.ext_argparse import ArgparseController as Controller
from cement.utils.version import get_version_banner

from cloudtail import get_version


VERSION_BANNER = """
cloudtail-%s: Follow, tail and query CloudWatch Logs
---
%s
""" % (get_version(), get_version_banner())


def filename_envvar(s):
    if 'CLOUDTAIL_CONFIG_FILE' in os.environ:
        return os.environ['CLOUDTAIL_CONFIG_FILE']
    return s


class Base(Controller):
    class Meta:
        label = 'base'

        # text displayed at the top of --help output
        description = 'cloudtail: Follow, tail and query CloudWatch Logs'

        # controller level arguments. ex: 'cloudtail --version'
        arguments = [
            (['-v', '--version'], {'action': 'version', 'version': VERSION_BANNER}),
            (
                ['-f', '--filename'],
                {
                    'dest': 'cloudtail_filename',
                    'action': 'store',
                    'default': 'cloudtail.yml',
                    'help': 'Path to the cloudtail config file',
                    'type': filename_envvar
                }
            ),
            (
                ['--profile'],
                {
                    'dest': 'profile',
                    'action': 'store',
                    'default': None,
                    'help': 'Use this AWS profile'
                }
            ),
            (
                ['--region'],
                {
                    'dest': 'region',
                    'action': 'store',
                    'default': None,
                    'help': 'Use this AWS region'
                }
            ),
            (
                ['--no-use-aws-section'],
                {
                    'action': 'store_true',
                    'dest': 'no_use_aws_section',
                    'default': False,
                    'help': 'Ignore the aws: section in cloudtail.yml'
                }
            ),
        ]

    def _default(self):
        """Default action if no sub-command is passed."""
        self.app.args.print_help()
