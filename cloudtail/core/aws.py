import os
from typing import Dict, Any, Optional, cast

import boto3
from botocore.config import Config as BotocoreConfig
import yaml

from cloudtail.exceptions import ConfigProcessingFailed


boto3_session: Optional[boto3.session.Session] = None
botocore_config: Optional[BotocoreConfig] = None


class AWSSessionBuilder:

    class NoSuchAWSProfile(Exception):
        """
        We raise this if the AWS profile we were asked to use does not exist in
        the user's ``~/.aws/config`` file.
        """
        pass

    def load_config(self, filename: str) -> Dict[str, Any]:
        """
        Read our cloudtail.yml file from disk and return it as parsed YAML.

        Args:
            filename: the path to our cloudtail.yml file

        Returns:
            The data loaded from the YAML file, or an empty dict if there is no
            such file.
        """
        if not os.path.exists(filename):
            return {}
        if not os.access(filename, os.R_OK):
            raise ConfigProcessingFailed(
                "cloudtail config file '{}' exists but is not readable".format(filename)
            )
        with open(filename, encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigProcessingFailed(
                    "cloudtail config file '{}' is not valid YAML: {}".format(filename, e)
                ) from e
        return data if data else {}

    def new(
        self,
        filename: str,
        profile: str = None,
        region: str = None,
        use_aws_section: bool = True
    ) -> boto3.session.Session:
        """
        Build and return a properly configured boto3 ``Session`` object.

        Command line ``profile`` and ``region`` win over the ``aws:`` section of
        cloudtail.yml, which wins over the normal AWS credentials resolution.

        Args:
            filename: the path to our cloudtail.yml file

        Keyword Args:
            profile: use this AWS profile
            region: use this AWS region
            use_aws_section: if ``False``, ignore any ``aws:`` section in cloudtail.yml

        Raises:
            AWSSessionBuilder.NoSuchAWSProfile: the requested profile is not in
                ``~/.aws/config``

        Returns:
            A configured boto3 ``Session`` object.
        """
        if not filename:
            filename = 'cloudtail.yml'
        config = self.load_config(filename)
        if config and use_aws_section:
            aws_config = dict(config.get('aws', {}) or {})
        else:
            aws_config = {}
        if profile:
            aws_config.pop('access_key', None)
            aws_config['profile'] = profile
        if region:
            aws_config['region'] = region
        return self.__get_boto3_session(config=aws_config)

    def __get_boto3_session(self, config: Dict[str, Any] = None) -> boto3.session.Session:
        if config:
            # If an API access key pair is provided in the 'aws' section, that
            # has priority
            if 'access_key' in config:
                session = boto3.session.Session(
                    aws_access_key_id=config.get('access_key'),
                    aws_secret_access_key=config.get('secret_key'),
                    region_name=config.get('region', None)
                )
            elif 'profile' in config:
                profile = config.get('profile')
                if profile not in boto3.session.Session().available_profiles:
                    raise self.NoSuchAWSProfile("AWS profile '{}' does not exist in your ~/.aws/config".format(profile))
                session = boto3.session.Session(
                    profile_name=profile,
                    region_name=config.get('region', None)
                )
            else:
                # Possibly just a region
                session = boto3.session.Session(
                    region_name=config.get('region', None)
                )
        else:
            session = boto3.session.Session()
        return session


def build_boto3_session(
    filename: str,
    profile: str = None,
    region: str = None,
    retry_max_attempts: int = 3,
    boto3_session_override: boto3.session.Session = None,
    use_aws_section: bool = True
) -> None:
    """
    Build a boto3 session object from the cloudtail.yml file, commandline flags and
    our environment.  Save it in the global variable :py:data:`boto3_session` so we
    don't have to keep constructing it.

    Args:
        filename: the path to our cloudtail.yml file

    Keyword Args:
        profile: use this AWS profile
        region: use this AWS region
        retry_max_attempts: how many times botocore should try each AWS call
        boto3_session_override: if not None, use this boto3 session object instead of
            building a new one
        use_aws_section: if ``False``, ignore any ``aws:`` section in cloudtail.yml
    """
    global boto3_session, botocore_config  # pylint: disable=global-statement
    botocore_config = BotocoreConfig(retries={'max_attempts': retry_max_attempts, 'mode': 'standard'})
    if boto3_session_override:
        boto3_session = boto3_session_override
    else:
        boto3_session = AWSSessionBuilder().new(
            filename,
            profile=profile,
            region=region,
            use_aws_section=use_aws_section
        )


def get_boto3_session(
    boto3_session_override: boto3.session.Session = None
) -> boto3.session.Session:
    """
    Get the boto3 session object that we've built, or the one that was passed in
    by ``boto3_session_override``.

    Important:

        You should have called :py:func:`build_boto3_session` before calling this
        function.
    """
    if boto3_session_override:
        return boto3_session_override
    if boto3_session:
        return boto3_session
    return cast(boto3.session.Session, boto3)


def get_client(service: str):
    """
    Return a boto3 client for ``service`` from our session, with our retry
    configuration.
    """
    if botocore_config:
        return get_boto3_session().client(service, config=botocore_config)
    return get_boto3_session().client(service)
