"""Unit tests for descriptor file formats."""

import json
import os
import shutil
import tempfile
import unittest

import yaml

from ecosystem import formats
from ecosystem.config import DescriptorSet, ExecMode
from ecosystem.exceptions import DescriptorError

ECOSYSTEM_JS = '''module.exports = {
    apps: [
        {
            name: 'temporal_worker',
            script: '/app/dist/main.js',
            instances: 1, // Multiple workers for better throughput
            exec_mode: "cluster",
            max_memory_restart: '1000M',
            watch: false,
            env: {
                NODE_ENV: 'production',
                IS_CRON_WORKER: 'false',
                IS_TEMPORAL_WORKER: 'true',
            },
        },
    ],
};
'''


class TestEcosystemReader(unittest.TestCase):
    """Test cases for the ecosystem module reader."""

    def test_parse_ecosystem_file(self):
        """Test parsing an ecosystem module with comments and trailing commas."""
        descriptor_set = formats.loads(ECOSYSTEM_JS, formats.JS)
        self.assertEqual(descriptor_set.names(), ['temporal_worker'])
        app = descriptor_set.get('temporal_worker')
        self.assertEqual(app.instances, 1)
        self.assertIs(app.exec_mode, ExecMode.CLUSTER)
        self.assertFalse(app.watch)
        self.assertEqual(app.env, {
            'NODE_ENV': 'production',
            'IS_CRON_WORKER': 'false',
            'IS_TEMPORAL_WORKER': 'true',
        })

    def test_compact_literal(self):
        """Test keys without spaces, block comments and escaped quotes."""
        text = (
            "/* generated */ module.exports = {apps:[{name:'it\\'s',"
            "script:'/app/dist/main.js',instances:3,exec_mode:'fork',"
            "env:{URL:'http://example.com/a:b',\"QUOTED KEY\":'x'}}]}"
        )
        app = formats.loads(text, formats.JS).apps[0]
        self.assertEqual(app.name, "it's")
        self.assertEqual(app.instances, 3)
        self.assertEqual(app.env['URL'], 'http://example.com/a:b')
        self.assertEqual(app.env['QUOTED KEY'], 'x')

    def test_comment_markers_inside_strings(self):
        """Test // inside a string is not treated as a comment."""
        text = (
            "module.exports = { apps: [ { name: 'api', "
            "script: '/app/dist/main.js', "
            "env: { HOME_URL: 'https://example.com' } } ] };"
        )
        app = formats.loads(text, formats.JS).apps[0]
        self.assertEqual(app.env['HOME_URL'], 'https://example.com')

    def test_invalid_modules(self):
        """Test files that are not a single exported literal object."""
        invalid = [
            '',
            "const apps = [];",
            "module.exports = [];",
            "module.exports = { apps: [ { name: 'x } ] };",
            "module.exports = { apps: `x` };",
            "module.exports = { apps: [ /* open ] };",
            "module.exports = { apps: [ { name: 'a', script: '/a' ] };",
            "module.exports = { apps: [ { name: 'a', script: '/a',\n"
            "  env: { NODE_ENV: process.env.NODE_ENV } } ] };",
            "module.exports = { apps: [ { name: 'a', script: '/a',\n"
            "  env: { FLAG: yes, OTHER: on } } ] };",
            "module.exports = { apps: [ { name: 'a', script: '/a',\n"
            "  instances: 1 + 1 } ] };",
            "module.exports = { apps: [ { name: '\\uD83D', script: '/a' } ] };",
        ]
        for text in invalid:
            with self.assertRaises(DescriptorError, msg=text):
                formats.loads(text, formats.JS)

    def test_keys_stay_strings(self):
        """Test keys YAML would read as booleans load as strings."""
        descriptor_set = formats.loads(
            "module.exports = { apps: [ { name: 'a', script: '/a',\n"
            "  env: { on: 'x', yes: false, PORT: 3000, RATIO: 0.5 } } ] };",
            formats.JS
        )
        self.assertEqual(descriptor_set.get('a').env, {
            'on': 'x', 'yes': 'false', 'PORT': '3000', 'RATIO': '0.5',
        })

    def test_astral_characters(self):
        """Test characters outside the BMP, raw and as escaped pairs."""
        descriptor_set = formats.loads(
            "module.exports = { apps: [ { name: 'a', script: '/a',\n"
            "  env: { RAW: '\U0001F600', PAIR: '\\uD83D\\uDE00' } } ] };",
            formats.JS
        )
        self.assertEqual(descriptor_set.get('a').env, {
            'RAW': '\U0001F600', 'PAIR': '\U0001F600',
        })
        self.assertIn('\U0001F600',
                      formats.dumps(descriptor_set, formats.YAML))
        for fmt in formats.FORMATS:
            text = formats.dumps(descriptor_set, fmt)
            self.assertEqual(formats.loads(text, fmt), descriptor_set, msg=fmt)


class TestWriters(unittest.TestCase):
    """Test cases for descriptor writers."""

    def setUp(self):
        """Set up test fixtures."""
        self.descriptor_set = formats.loads(ECOSYSTEM_JS, formats.JS)
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_js_layout(self):
        """Test the ecosystem writer layout."""
        text = formats.dumps(self.descriptor_set, formats.JS)
        self.assertEqual(text, ECOSYSTEM_JS.replace(
            ' // Multiple workers for better throughput', ''
        ))

    def test_js_quoting(self):
        """Test strings needing escapes are double quoted."""
        descriptor_set = DescriptorSet.from_dict({
            'apps': [{
                'name': "it's",
                'script': '/app/dist/main.js',
                'env': {'GREETING': 'say "hi"', 'needs-quotes': 'x'},
            }]
        })
        text = formats.dumps(descriptor_set, formats.JS)
        self.assertIn('name: "it\'s",', text)
        self.assertIn('"needs-quotes": \'x\',', text)
        self.assertEqual(formats.loads(text, formats.JS), descriptor_set)

    def test_json_and_yaml(self):
        """Test JSON and YAML output parse to the same mapping."""
        expected = self.descriptor_set.to_dict()
        self.assertEqual(
            json.loads(formats.dumps(self.descriptor_set, formats.JSON)),
            expected
        )
        self.assertEqual(
            yaml.safe_load(formats.dumps(self.descriptor_set, formats.YAML)),
            expected
        )

    def test_round_trip(self):
        """Test every format reads back what it wrote."""
        for fmt in formats.FORMATS:
            text = formats.dumps(self.descriptor_set, fmt)
            self.assertEqual(
                formats.loads(text, fmt), self.descriptor_set, msg=fmt
            )

    def test_dump_and_load_files(self):
        """Test writing files creates directories and picks format by suffix."""
        for name in ('a/ecosystem.config.js', 'b/apps.json', 'c/apps.yml'):
            path = os.path.join(self.test_dir, name)
            formats.dump(self.descriptor_set, path)
            self.assertTrue(os.path.isfile(path))
            self.assertEqual(formats.load(path), self.descriptor_set)

    def test_unknown_format(self):
        """Test unknown suffixes and format names."""
        with self.assertRaises(DescriptorError):
            formats.format_for_path('ecosystem.toml')
        with self.assertRaises(DescriptorError):
            formats.dumps(self.descriptor_set, 'toml')
        with self.assertRaises(DescriptorError):
            formats.loads('{}', 'toml')

    def test_load_missing_file(self):
        """Test loading a non-existent file."""
        with self.assertRaises(FileNotFoundError):
            formats.load(os.path.join(self.test_dir, 'missing.config.js'))

    def test_load_invalid_file_names_path(self):
        """Test load errors mention the file."""
        path = os.path.join(self.test_dir, 'broken.json')
        with open(path, 'w', encoding='utf-8') as f:
            f.write('{"apps": [')
        with self.assertRaises(DescriptorError) as ctx:
            formats.load(path)
        self.assertIn(path, str(ctx.exception))


if __name__ == '__main__':
    unittest.main()
