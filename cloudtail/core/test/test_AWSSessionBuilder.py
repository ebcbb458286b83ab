import os
import tempfile
import unittest

from mock import Mock
from testfixtures import Replacer

from cloudtail.core.aws import AWSSessionBuilder
from cloudtail.exceptions import ConfigProcessingFailed


class TestAWSSessionBuilder_load_config(unittest.TestCase):

    def write(self, contents):
        fd, filename = tempfile.mkstemp(suffix='.yml')
        with os.fdopen(fd, 'w') as f:
            f.write(contents)
        self.addCleanup(os.unlink, filename)
        return filename

    def test_missing_file_is_empty(self):
        self.assertEqual(AWSSessionBuilder().load_config('/nonexistent/cloudtail.yml'), {})

    def test_loads_yaml(self):
        filename = self.write('aws:\n  region: us-west-2\n')
        self.assertEqual(AWSSessionBuilder().load_config(filename), {'aws': {'region': 'us-west-2'}})

    def test_invalid_yaml_raises(self):
        filename = self.write('aws: [unclosed\n')
        self.assertRaises(ConfigProcessingFailed, AWSSessionBuilder().load_config, filename)


class TestAWSSessionBuilder_new(unittest.TestCase):

    def setUp(self):
        fd, self.filename = tempfile.mkstemp(suffix='.yml')
        with os.fdopen(fd, 'w') as f:
            f.write('aws:\n  access_key: AKIA\n  secret_key: secret\n  region: us-west-2\n')
        self.addCleanup(os.unlink, self.filename)
        self.replacer = Replacer()
        self.addCleanup(self.replacer.restore)
        self.session = Mock()
        self.session.return_value.available_profiles = ['prod']
        self.replacer('cloudtail.core.aws.boto3.session.Session', self.session)

    def test_access_key_from_aws_section(self):
        AWSSessionBuilder().new(self.filename)
        self.session.assert_called_once_with(
            aws_access_key_id='AKIA',
            aws_secret_access_key='secret',
            region_name='us-west-2'
        )

    def test_command_line_profile_wins(self):
        AWSSessionBuilder().new(self.filename, profile='prod', region='us-east-1')
        self.session.assert_called_with(profile_name='prod', region_name='us-east-1')

    def test_unknown_profile_raises(self):
        self.assertRaises(AWSSessionBuilder.NoSuchAWSProfile, AWSSessionBuilder().new, self.filename, profile='dev')

    def test_ignore_aws_section(self):
        AWSSessionBuilder().new(self.filename, use_aws_section=False)
        self.session.assert_called_once_with()
