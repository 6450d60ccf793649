import os
import platform

from configobj import ConfigObj, ConfigObjError, Section, flatten_errors
from validate import Validator

from serialmon.settings import PortSettings

# The default extension for configuration files
config_extension = '.cfg'

# the base name of the application configuration
config_name = 'serialmon'


def config_flavor(name, flavor=None):
    configname = name if not flavor else name + '.' + flavor
    return configname


def config_directory():
    """
    The directory holding the packaged configuration files.
    """
    return os.path.dirname(os.path.abspath(__file__))


def config_filename(name, directory=None):
    """
    Determines the location of a config file in the given directory, or the packaged configuration directory.
    """
    config_file = os.path.join(directory or config_directory(), name + config_extension)
    return config_file


def load_config_file_base(file, must_exist=True):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist) \
            if must_exist or os.path.exists(file) else ConfigObj()
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, subpart=None)->ConfigObj:
    """
    Loads a specialization of a config file. The configuration file is expected to be named
    after the base, followed by a period and then the specialization, if the specialization is given,
    otherwise just the base name.
    :param name:    The name of the base configuration
    :param subpart: The name of the specialization.
    :return: The ConfigObj for the configuration file.
    """
    configname = config_flavor(name, subpart)
    file = config_filename(configname, directory)
    config = load_config_file_base(file, False)
    return config


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def load_config(name=config_name, directory=None):
    """
        Loads all the configuration files that relate to the given name.
        Configurations are merged in this order, later ones taking precedence:
        - the default specialization
        - the platform specialization
        - the user override (~/name.cfg)
        - the base configuration
        The merged configuration is then validated against the "schema" specialization,
        which also supplies defaults and converts values to their types.
    :param directory: the location of the configuration files. Defaults to the packaged configuration.
    :return: the validated ConfigObj
    """
    local_config = config_flavor_file(name, directory)
    default_config = config_flavor_file(name, directory, 'default')
    platform_config = config_flavor_file(name, directory, os_name())
    user_config = load_config_file_base(os.path.expanduser(
        '~/' + name + config_extension), must_exist=False)
    config = ConfigObj(configspec=config_filename(config_flavor(name, 'schema'), directory))
    config.merge(default_config)
    config.merge(platform_config)
    config.merge(user_config)
    config.merge(local_config)

    validator = Validator()
    result = config.validate(validator, preserve_errors=True)
    if result is not True:
        failures = []
        for section_list, key, res in flatten_errors(config, result):
            where = '.'.join(section_list + ([key] if key is not None else []))
            failures.append("%s (%s)" % (where, res or 'missing'))
        raise ConfigObjError("the config file %s failed validation: %s" % (name, ', '.join(failures)))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the named configuration section
    :param conf:        The root configuration
    :param path:   An iterable that lists the names of the config to resolve
    :return: The configuration object identified by the path
    """
    for p in path:    # lookup specific section
        conf = conf.get(p, None)
        if conf is None:
            return
    return conf


def apply_conf_path(conf: Section, name_parts, target):
    """
    Applies a configuration path to a given target object
    :param conf:        The root configuration object
    :param name_parts:  The path of the configuration to apply
    :param target:      The target object that receives the configured values
    :return:
    """
    conf = fetch_conf_path(conf, name_parts)
    if conf:
        apply_conf(conf, target)


def apply_conf(conf: Section, target):
    """
    Applies the attributes contained in a configuration object to a target object.
    It does this by iterating over the items in the configuration and setting any attributes with the same name.
    :param conf:
    :param target:
    :return:
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)


def port_settings_from_config(conf: Section, section='port') -> PortSettings:
    """
    Builds the port settings described by a section of a validated configuration.
    """
    port = fetch_conf_path(conf, section.split('.'))
    if port is None:
        raise ConfigObjError("no [%s] section in the configuration" % section)
    return PortSettings(port['name'], baud_rate=port['baud_rate'], data_bits=port['data_bits'],
                        parity=port['parity'], stop_bits=port['stop_bits'], timeout=port['timeout'])


def load_port_settings(name=config_name, directory=None) -> PortSettings:
    """
    Loads the default port settings from the configuration files.
    """
    return port_settings_from_config(load_config(name, directory))
