"""Command layer of an administrative shell: commands, help, sessions and a string writer."""