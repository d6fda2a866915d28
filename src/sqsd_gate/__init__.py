"""sqsd-gate: trust boundary for workers fed by the SQS daemon.

The SQS daemon of an Elastic Beanstalk worker environment POSTs each queued
message to the local application. sqsd-gate decides per request whether to
pass it through, reject it, run a periodic task, or verify and execute a
signed job.
"""

__version__ = "0.1.0"
