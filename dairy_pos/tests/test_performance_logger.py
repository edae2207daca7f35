from dairy_pos import performance_logger as perf


def read(path):
    with open(path, encoding='utf-8') as f:
        return f.read()


def test_action_names_use_the_flask_rule():
    assert perf.action_name('POST', '/api/checkout') == 'Confirmar venta'
    assert perf.action_name('GET', '/api/bills/GD-1/pdf', '/api/bills/<invoice_no>/pdf') == 'Descargar factura PDF'
    assert perf.action_name('GET', '/unknown') == 'GET /unknown'


def test_slow_request_goes_to_both_logs():
    perf.log_request('POST', '/api/checkout', '/api/checkout', perf.CRITICAL_MS + 5, 'local')
    assert 'Acción: Confirmar venta' in read(perf.PERFORMANCE_LOG)
    slow = read(perf.SLOW_ROUTES_LOG)
    assert '[CRITICAL]' in slow
    assert f'(umbral: {perf.CRITICAL_MS} ms)' in slow


def test_profile_function_accumulates_calls():
    perf.reset_stats()

    @perf.profile_function(name='Sumar')
    def add(a, b):
        return a + b

    assert add(1, 2) == 3
    assert add(2, 2) == 4
    if perf.ENABLE_PROFILING:
        assert perf.get_function_stats()['Sumar']['calls'] == 2


def test_log_error_is_written_with_owner():
    perf.log_error('shop:update', 'disk full', 'local')
    text = read(perf.ERRORS_LOG)
    assert 'Operación: shop:update' in text
    assert 'Error: disk full' in text
