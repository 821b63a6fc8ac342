"""
Static threat pattern catalog.

Covers destructive filesystem operations, remote code execution idioms,
credential and data exfiltration, persistence mechanisms, reverse shells and
listeners, privilege escalation, command injection tricks and prompt-injection
phrasing. Every pattern is matched case-insensitively against the full text.
"""

from __future__ import annotations

from ..models.security import RiskLevel, ThreatCategory, ThreatPattern

_FS = ThreatCategory.FILESYSTEM_DESTRUCTION
_RCE = ThreatCategory.REMOTE_CODE_EXECUTION
_EXFIL = ThreatCategory.DATA_EXFILTRATION
_SYS = ThreatCategory.SYSTEM_MODIFICATION
_NET = ThreatCategory.NETWORK_ACCESS
_PROC = ThreatCategory.PROCESS_MANIPULATION
_PRIV = ThreatCategory.PRIVILEGE_ESCALATION
_INJ = ThreatCategory.COMMAND_INJECTION
_PROMPT = ThreatCategory.PROMPT_INJECTION

THREAT_PATTERNS: tuple[ThreatPattern, ...] = (
    # Filesystem destruction
    ThreatPattern.compile(
        "rm_rf_root",
        r"rm\s+(-[rf]*[rf][rf]*|--recursive|--force).*[/\\]",
        "Recursive file deletion with rm -rf",
        RiskLevel.HIGH,
        _FS,
    ),
    ThreatPattern.compile(
        "rm_rf_system",
        r"rm\s+(-[rf]*[rf][rf]*|--recursive|--force).*(bin|etc|usr|var|sys|proc|dev|boot|lib|opt|srv|tmp)",
        "Recursive deletion of system directories",
        RiskLevel.CRITICAL,
        _FS,
    ),
    ThreatPattern.compile(
        "dd_destruction",
        r"dd\s+.*if=/dev/(zero|random|urandom).*of=/dev/[sh]d[a-z]",
        "Disk destruction using dd command",
        RiskLevel.CRITICAL,
        _FS,
    ),
    ThreatPattern.compile(
        "format_drive",
        r"(format|mkfs\.[a-z]+)\s+[/\\]dev[/\\][sh]d[a-z]",
        "Formatting system drives",
        RiskLevel.CRITICAL,
        _FS,
    ),
    # Remote code execution
    ThreatPattern.compile(
        "curl_bash_execution",
        r"(curl|wget)\s+.*\|\s*(bash|sh|zsh|fish|csh|tcsh)",
        "Remote script execution via curl/wget piped to shell",
        RiskLevel.CRITICAL,
        _RCE,
    ),
    ThreatPattern.compile(
        "bash_process_substitution",
        r"bash\s*<\s*\(\s*(curl|wget)",
        "Bash process substitution with remote content",
        RiskLevel.HIGH,
        _RCE,
    ),
    ThreatPattern.compile(
        "python_remote_exec",
        r"python[23]?\s+-c\s+.*urllib|requests.*exec",
        "Python remote code execution",
        RiskLevel.HIGH,
        _RCE,
    ),
    ThreatPattern.compile(
        "powershell_download_exec",
        r"powershell.*DownloadString.*Invoke-Expression",
        "PowerShell remote script execution",
        RiskLevel.HIGH,
        _RCE,
    ),
    # Data exfiltration
    ThreatPattern.compile(
        "ssh_key_exfiltration",
        r"(curl|wget).*-d.*\.ssh/(id_rsa|id_ed25519|id_ecdsa)",
        "SSH key exfiltration",
        RiskLevel.HIGH,
        _EXFIL,
    ),
    ThreatPattern.compile(
        "password_file_access",
        r"(cat|grep|awk|sed).*(/etc/passwd|/etc/shadow|\.password|\.env)",
        "Password file access",
        RiskLevel.HIGH,
        _EXFIL,
    ),
    ThreatPattern.compile(
        "history_exfiltration",
        r"(curl|wget).*-d.*\.(bash_history|zsh_history|history)",
        "Command history exfiltration",
        RiskLevel.HIGH,
        _EXFIL,
    ),
    # Persistence
    ThreatPattern.compile(
        "crontab_modification",
        r"(crontab\s+-e|echo.*>.*crontab|.*>\s*/var/spool/cron)",
        "Crontab modification for persistence",
        RiskLevel.HIGH,
        _SYS,
    ),
    ThreatPattern.compile(
        "systemd_service_creation",
        r"systemctl.*enable|.*\.service.*>/etc/systemd",
        "Systemd service creation",
        RiskLevel.HIGH,
        _SYS,
    ),
    ThreatPattern.compile(
        "hosts_file_modification",
        r"echo.*>.*/etc/hosts|hosts\.txt",
        "Hosts file modification",
        RiskLevel.MEDIUM,
        _SYS,
    ),
    # Network access
    ThreatPattern.compile(
        "netcat_listener",
        r"nc\s+(-l|-p)\s+\d+",
        "Netcat listener creation",
        RiskLevel.HIGH,
        _NET,
    ),
    ThreatPattern.compile(
        "reverse_shell",
        r"(nc|netcat|bash|sh).*-e\s*(bash|sh|/bin/bash|/bin/sh)",
        "Reverse shell creation",
        RiskLevel.CRITICAL,
        _NET,
    ),
    ThreatPattern.compile(
        "bash_dev_tcp_shell",
        r"bash\s+-i.*>&\s*/dev/tcp/|/dev/tcp/[0-9.]+/[0-9]+",
        "Bash reverse shell via /dev/tcp",
        RiskLevel.CRITICAL,
        _NET,
    ),
    ThreatPattern.compile(
        "ssh_tunnel",
        r"ssh\s+.*-[LRD]\s+\d+:",
        "SSH tunnel creation",
        RiskLevel.MEDIUM,
        _NET,
    ),
    # Process manipulation
    ThreatPattern.compile(
        "kill_security_process",
        r"kill(all)?\s+.*\b(antivirus|firewall|defender|security|monitor)\b",
        "Killing security processes",
        RiskLevel.HIGH,
        _PROC,
    ),
    ThreatPattern.compile(
        "process_injection",
        r"gdb\s+.*attach|ptrace.*PTRACE_POKETEXT",
        "Process injection techniques",
        RiskLevel.HIGH,
        _PROC,
    ),
    # Privilege escalation
    ThreatPattern.compile(
        "sudo_without_password",
        r"echo.*NOPASSWD.*>.*sudoers",
        "Sudo privilege escalation",
        RiskLevel.CRITICAL,
        _PRIV,
    ),
    ThreatPattern.compile(
        "suid_binary_creation",
        r"chmod\s+[47][0-7][0-7][0-7]|chmod\s+\+s",
        "SUID binary creation",
        RiskLevel.HIGH,
        _PRIV,
    ),
    ThreatPattern.compile(
        "docker_privileged_exec",
        r"docker\s+(run|exec).*--privileged",
        "Docker privileged container execution",
        RiskLevel.HIGH,
        _PRIV,
    ),
    # Command injection
    ThreatPattern.compile(
        "command_substitution",
        r"\$\([^)]*[;&|><][^)]*\)|`[^`]*[;&|><][^`]*`",
        "Command substitution with shell operators",
        RiskLevel.HIGH,
        _INJ,
    ),
    ThreatPattern.compile(
        "encoded_commands",
        r"(base64|hex|url).*decode.*\|\s*(bash|sh)",
        "Encoded command execution",
        RiskLevel.HIGH,
        _INJ,
    ),
    ThreatPattern.compile(
        "base64_encoded_shell",
        r"(echo|printf)\s+[A-Za-z0-9+/=]{20,}\s*\|\s*base64\s+-d\s*\|\s*(bash|sh|zsh)",
        "Base64 encoded shell commands",
        RiskLevel.HIGH,
        _INJ,
    ),
    ThreatPattern.compile(
        "eval_with_variables",
        r"eval\s+\$[A-Za-z_][A-Za-z0-9_]*|\beval\s+.*\$\{",
        "Eval with variable substitution",
        RiskLevel.HIGH,
        _INJ,
    ),
    ThreatPattern.compile(
        "eval_function_call",
        r"\beval\s*\([^)]*\)|\bexec\s*\([^)]*\)",
        "Dangerous eval/exec function call",
        RiskLevel.HIGH,
        _INJ,
    ),
    # Prompt injection
    ThreatPattern.compile(
        "ignore_instructions",
        r"ignore\s+(all\s+)?(previous|prior|above)\s+(instructions?|prompts?|rules?)",
        "Prompt injection: ignore previous instructions",
        RiskLevel.HIGH,
        _PROMPT,
    ),
    ThreatPattern.compile(
        "new_instructions",
        r"new\s+instructions?:?|your\s+new\s+(task|goal|objective)",
        "Prompt injection: new instructions",
        RiskLevel.MEDIUM,
        _PROMPT,
    ),
    ThreatPattern.compile(
        "system_prompt_override",
        r"system\s*:\s*|<\|system\|>|\[SYSTEM\]",
        "Prompt injection: system prompt override attempt",
        RiskLevel.HIGH,
        _PROMPT,
    ),
    ThreatPattern.compile(
        "jailbreak_attempt",
        r"\bDAN\b|do\s+anything\s+now|pretend\s+you\s+(are|can)|act\s+as\s+if",
        "Prompt injection: jailbreak attempt",
        RiskLevel.HIGH,
        _PROMPT,
    ),
    ThreatPattern.compile(
        "role_override",
        r"you\s+are\s+(now|no\s+longer)|from\s+now\s+on\s+you",
        "Prompt injection: role override",
        RiskLevel.MEDIUM,
        _PROMPT,
    ),
    # Advanced system access
    ThreatPattern.compile(
        "kernel_module_manipulation",
        r"(insmod|rmmod|modprobe).*\.ko",
        "Kernel module manipulation",
        RiskLevel.CRITICAL,
        _SYS,
    ),
    ThreatPattern.compile(
        "memory_dump",
        r"(gcore|gdb.*dump|/proc/[0-9]+/mem)",
        "Memory dumping techniques",
        RiskLevel.HIGH,
        _EXFIL,
    ),
    ThreatPattern.compile(
        "network_scanning",
        r"\b(nmap|masscan|zmap|unicornscan)\b.*-[sS]",
        "Network scanning tools",
        RiskLevel.MEDIUM,
        _NET,
    ),
    ThreatPattern.compile(
        "password_cracking_tools",
        r"\b(john|hashcat|hydra|medusa|brutespray)\b",
        "Password cracking tools",
        RiskLevel.HIGH,
        _PRIV,
    ),
)
