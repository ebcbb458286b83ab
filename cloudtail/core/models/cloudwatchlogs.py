from typing import List, Optional

from .abstract import Manager, Model


# ----------------------------------------
# Managers
# ----------------------------------------

class CloudWatchLogGroupManager(Manager):

    service = 'logs'

    def get(self, pk: str, **_) -> "CloudWatchLogGroup":
        # hint: (str["{log group name}"])
        response = self.client.describe_log_groups(
            logGroupNamePrefix=pk
        )
        groups = [group for group in response['logGroups'] if group['logGroupName'] == pk]
        if len(groups) > 1:
            raise CloudWatchLogGroup.MultipleObjectsReturned(
                "Got more than one log group when searching for pk={}: {}".format(
                    pk,
                    ", ".join([group['logGroupName'] for group in groups])
                )
            )
        elif len(groups) == 0:
            raise CloudWatchLogGroup.DoesNotExist(
                "No CloudWatchLogGroup matching pk={} exists in AWS.".format(pk)
            )
        return CloudWatchLogGroup(groups[0])

    def list(self, prefix: str = None) -> List["CloudWatchLogGroup"]:
        paginator = self.client.get_paginator('describe_log_groups')
        kwargs = {}
        if prefix:
            kwargs['logGroupNamePrefix'] = prefix
        response_iterator = paginator.paginate(**kwargs)
        group_data = []
        for response in response_iterator:
            group_data.extend(response['logGroups'])
        return [CloudWatchLogGroup(data) for data in group_data]


class CloudWatchLogStreamManager(Manager):

    service = 'logs'

    def list(self, log_group_name: str, prefix: str = None, maxitems: int = None) -> List["CloudWatchLogStream"]:
        """
        List the streams in ``log_group_name``, most recently active first.

        .. note::

            ``describe_log_streams`` can't order by event time and filter by prefix
            at the same time, so when we have a prefix we sort the streams ourselves.
        """
        paginator = self.client.get_paginator('describe_log_streams')
        kwargs = {'logGroupName': log_group_name}
        if prefix:
            kwargs['logStreamNamePrefix'] = prefix
        else:
            kwargs['orderBy'] = 'LastEventTime'
            kwargs['descending'] = True
        if maxitems:
            kwargs['PaginationConfig'] = {'PageSize': min(maxitems, 50)}
        response_iterator = paginator.paginate(**kwargs)
        stream_data = []
        for response in response_iterator:
            for stream in response['logStreams']:
                stream['logGroupName'] = log_group_name
            stream_data.extend(response['logStreams'])
            if maxitems and len(stream_data) >= maxitems:
                stream_data = stream_data[:maxitems]
                break
        streams = [CloudWatchLogStream(data) for data in stream_data]
        if prefix:
            streams = sorted(streams, key=lambda x: x.last_event_timestamp or -1, reverse=True)
        return streams


# ----------------------------------------
# Models
# ----------------------------------------

class CloudWatchLogGroup(Model):

    objects = CloudWatchLogGroupManager()

    @property
    def pk(self) -> str:
        return self.data['logGroupName']

    @property
    def name(self) -> str:
        return self.data['logGroupName']

    @property
    def arn(self) -> str:
        """
        The bare ARN of this log group.  The older ``arn`` key has a trailing
        ``:*`` that APIs like ``start_live_tail`` reject, so prefer ``logGroupArn``.
        """
        arn = self.data.get('logGroupArn')
        if not arn:
            arn = self.data['arn']
            if arn.endswith(':*'):
                arn = arn[:-2]
        return arn

    def log_streams(self, stream_prefix: str = None, maxitems: int = None) -> List["CloudWatchLogStream"]:
        """
        Return our log streams, most recently active first.

        :param stream_prefix str: (optional) if provided, only return streams matching this prefix
        :param maxitems Union[int, None]: (optional) if provided, limit the streams returned to the ``maxitems`` most
                                          recently updated ones

        :rtype: list(CloudWatchLogStream)
        """
        return self.get_cached(
            'log_streams:{}:{}'.format(stream_prefix, maxitems),
            CloudWatchLogStream.objects.list,
            [self.pk],
            {'prefix': stream_prefix, 'maxitems': maxitems}
        )


class CloudWatchLogStream(Model):

    objects = CloudWatchLogStreamManager()

    @property
    def pk(self) -> str:
        return "{}:{}".format(self.data['logGroupName'], self.data['logStreamName'])

    @property
    def name(self) -> str:
        return self.data['logStreamName']

    @property
    def last_event_timestamp(self) -> Optional[int]:
        return self.data.get('lastEventTimestamp')
