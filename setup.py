from setuptools import setup

setup(
	name='dozer',
	version='0.1.0',
	description='Power manager: idle, lid and battery actions',
	packages=['dozer', 'dozer.modules'],
	package_dir={'':'src'},
	python_requires='>=3.10',
	install_requires=[
		'dbus-python',
		'PyGObject',
		'inotify_simple',
		'python-xlib',
	],
	extras_require={
		'test': [
			'pytest',
		],
	},
	entry_points={
		'console_scripts': [
			'dozer=dozer:main',
		]
	}
)
