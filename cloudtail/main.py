from cement import App, init_defaults
from cement.core.exc import CaughtSignal

from .controllers import (
    Base,
    Logs,
    LogsCloudWatchLogGroup,
    LogsCloudWatchLogStream,
)
from .core.aws import build_boto3_session
from .exceptions import CloudtailAppError

# configuration defaults
CONFIG = init_defaults('cloudtail')
CONFIG['cloudtail']['max_reconnects'] = 5
CONFIG['cloudtail']['reconnect_delay'] = 1.0
CONFIG['cloudtail']['poll_interval'] = 2.0
CONFIG['cloudtail']['lookback'] = 10.0
CONFIG['cloudtail']['stream_page_size'] = 50
CONFIG['cloudtail']['event_page_size'] = 100
CONFIG['cloudtail']['query_poll_interval'] = 5.0
CONFIG['cloudtail']['query_max_attempts'] = 120
CONFIG['cloudtail']['retry_max_attempts'] = 3
META = init_defaults('log.colorlog')
META['log.colorlog']['log_level_argument'] = ['-l', '--level']


def post_arg_parse_build_boto3_session(app: "CloudtailApp") -> None:
    """
    After parsing arguments but before doing any other actions, build a properly
    configured ``boto3.session.Session`` object for us to use in our AWS work.

    Args:
        app: our CloudtailApp object
    """
    app.log.debug('building boto3 session')
    build_boto3_session(
        app.pargs.cloudtail_filename,
        profile=app.pargs.profile,
        region=app.pargs.region,
        retry_max_attempts=int(app.config.get('cloudtail', 'retry_max_attempts')),
        use_aws_section=not app.pargs.no_use_aws_section
    )


# ------------------
# The cement app
# ------------------

class CloudtailApp(App):
    """cloudtail primary application."""

    class Meta:
        label = 'cloudtail'

        config_defaults = CONFIG
        meta_defaults = META

        # call sys.exit() on close
        exit_on_close = True

        # load additional framework extensions
        extensions = [
            'yaml',
            'colorlog',
            'print',
        ]

        # configuration handler
        config_handler = 'yaml'

        # configuration file suffix
        config_file_suffix = '.yml'

        # handlers
        log_handler = 'colorlog'
        output_handler = 'print'

        # register handlers
        handlers = [
            Base,
            Logs,
            LogsCloudWatchLogGroup,
            LogsCloudWatchLogStream,
        ]

        # register hooks
        hooks = [
            ('post_argument_parsing', post_arg_parse_build_boto3_session)
        ]


# ==========================================
# entrypoint
# ==========================================


def main():
    with CloudtailApp() as app:
        try:
            app.run()

        except AssertionError as e:
            print('AssertionError > %s' % e.args[0])
            app.exit_code = 1

            if app.debug is True:
                import traceback
                traceback.print_exc()

        except CloudtailAppError as e:
            print('CloudtailAppError > %s' % e.args[0])
            app.exit_code = 1

            if app.debug is True:
                import traceback
                traceback.print_exc()

        except CaughtSignal as e:
            # Default Cement signals are SIGINT and SIGTERM, exit 0 (non-error)
            print('\n%s' % e)
            app.exit_code = 0


if __name__ == '__main__':
    main()
