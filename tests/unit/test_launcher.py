"""Unit tests for launch plans."""

import unittest

from ecosystem import launcher, presets
from ecosystem.config import ProcessSpec
from ecosystem.roles import Role


class TestLauncher(unittest.TestCase):
    """Test cases for launch plan expansion."""

    def setUp(self):
        """Set up test fixtures."""
        self.spec = ProcessSpec(
            name='api_service',
            script='/app/dist/main.js',
            instances=2,
            exec_mode='cluster',
            env={'NODE_ENV': 'production', 'IS_CRON_WORKER': 'false'}
        )

    def test_build_command(self):
        """Test building the command for an app."""
        self.assertEqual(
            launcher.build_command(self.spec), ['node', '/app/dist/main.js']
        )
        self.assertEqual(
            launcher.build_command(self.spec, '/usr/local/bin/node'),
            ['/usr/local/bin/node', '/app/dist/main.js']
        )

    def test_build_environment(self):
        """Test app env overrides the inherited environment."""
        env = launcher.build_environment(
            self.spec, 1, {'PATH': '/usr/bin', 'NODE_ENV': 'development'}
        )
        self.assertEqual(env, {
            'PATH': '/usr/bin',
            'NODE_ENV': 'production',
            'IS_CRON_WORKER': 'false',
            'NODE_APP_INSTANCE': '1',
        })

    def test_build_environment_without_base(self):
        """Test the environment defaults to the app env only."""
        env = launcher.build_environment(self.spec, 0)
        self.assertEqual(env['NODE_APP_INSTANCE'], '0')
        self.assertNotIn('PATH', env)

    def test_plan_combined(self):
        """Test one plan per instance, apps in declaration order."""
        plans = launcher.plan(presets.build(presets.COMBINED))
        self.assertEqual(
            [(p.spec.name, p.instance_id) for p in plans],
            [('api_service', 0), ('cron', 0), ('temporal', 0)]
        )
        self.assertEqual(
            [p.role for p in plans], [Role.API, Role.CRON, Role.TEMPORAL]
        )

    def test_plan_instances(self):
        """Test clustered apps expand into all their instances."""
        plans = launcher.plan(presets.build(presets.API), interpreter='nodejs')
        self.assertEqual([p.instance_id for p in plans], [0, 1])
        self.assertEqual(plans[1].command, ['nodejs', '/app/dist/main.js'])
        self.assertEqual(plans[1].env['NODE_APP_INSTANCE'], '1')
        self.assertEqual(
            plans[0].describe(),
            'api_service[0] (cluster, api): nodejs /app/dist/main.js'
        )


if __name__ == '__main__':
    unittest.main()
